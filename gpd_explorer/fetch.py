"""Plot and Download actions.

Both actions fetch the full dataset for an :class:`~gpd_explorer.options.Options`
snapshot taken when the action starts. Plot appends the result to the target
tab and re-renders it; Download hands it to the exporter through the session's
download buffer and never touches the tab store.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Optional, Protocol, runtime_checkable

from .errors import DatasetFetchFailed
from .options import Dataset, Options, make_dataset
from .session import SessionState

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Error: Data not found"


@runtime_checkable
class DatasetService(Protocol):
    async def fetch_dataset(self, options: Options) -> Sequence[Mapping[str, Any]]: ...


@runtime_checkable
class Renderer(Protocol):
    def render(self, tab_id: int, datasets: Sequence[Dataset]) -> Any: ...


@runtime_checkable
class Exporter(Protocol):
    def export(self, dataset: Dataset, filename: str) -> Any: ...


async def load_dataset(service: DatasetService, options: Options) -> Dataset:
    """Fetch and validate one dataset, preserving the service's row order.

    Raises
    ------
    DatasetFetchFailed
        If the service fails, or returns something that is not a non-empty
        sequence of complete data points.
    """
    try:
        rows = await service.fetch_dataset(options)
    except DatasetFetchFailed:
        raise
    except Exception as exc:
        raise DatasetFetchFailed(f"dataset request failed for {options.as_dict()}: {exc}") from exc
    if isinstance(rows, (str, bytes, Mapping)) or not isinstance(rows, Sequence):
        raise DatasetFetchFailed(f"dataset response is not a sequence of points: {type(rows).__name__}")
    try:
        dataset = make_dataset(rows)
    except (TypeError, ValueError) as exc:
        raise DatasetFetchFailed(f"dataset response is invalid: {exc}") from exc
    if not dataset:
        raise DatasetFetchFailed(f"dataset for {options.as_dict()} is empty")
    return dataset


class FetchOrchestrator:
    """Drive the Plot and Download actions for one session.

    Parameters
    ----------
    service : DatasetService
        Source of datasets.
    session : SessionState
        Session providing the current options, the tab store and the
        busy/error fields read by the UI shell.
    renderer : Renderer, optional
        Called as ``render(tab_id, datasets)`` after every successful plot.
    exporter : Exporter, optional
        Called as ``export(dataset, filename)`` after every successful download.
    download_filename : str, default="model.csv"
    error_message : str, default="Error: Data not found"
        Text placed in ``session.error_message`` when a fetch fails.
    """

    def __init__(
        self,
        service: DatasetService,
        session: SessionState,
        *,
        renderer: Optional[Renderer] = None,
        exporter: Optional[Exporter] = None,
        download_filename: str = "model.csv",
        error_message: str = DEFAULT_ERROR_MESSAGE,
    ) -> None:
        self._service = service
        self._session = session
        self._renderer = renderer
        self._exporter = exporter
        self._download_filename = download_filename
        self._error_message = error_message

    @property
    def session(self) -> SessionState:
        return self._session

    async def plot(self, options: Optional[Options] = None, tab_id: Optional[int] = None) -> Optional[Dataset]:
        """Fetch a dataset and overlay it on ``tab_id``.

        Returns the appended dataset, or ``None`` when the fetch failed.
        ``InvalidTabId`` is raised before any request is made. A new tab is
        created only once its first dataset arrives, so a failed plot leaves
        the store untouched.
        """
        snapshot = self._session.options if options is None else options
        target = self._session.selected_tab if tab_id is None else tab_id
        self._session.tabs.check_tab(target)

        dataset = await self._fetch(snapshot, action="plot")
        if dataset is None:
            return None

        # No await between completion and append: completion order is plot order.
        self._session.tabs.ensure_tab(target)
        count = self._session.tabs.append(target, dataset)
        logger.info("plot tab=%d datasets=%d points=%d", target, count, len(dataset))
        if self._renderer is not None:
            self._renderer.render(target, self._session.tabs.datasets_for(target))
        return dataset

    async def download(self, options: Optional[Options] = None, filename: Optional[str] = None) -> Optional[Dataset]:
        """Fetch a dataset into the download buffer and export it.

        Returns the exported dataset, or ``None`` when the fetch failed.
        """
        snapshot = self._session.options if options is None else options
        name = filename or self._download_filename

        dataset = await self._fetch(snapshot, action="download")
        if dataset is None:
            return None

        self._session.download_buffer = dataset
        logger.info("download %s points=%d", name, len(dataset))
        if self._exporter is not None:
            self._exporter.export(dataset, name)
        return dataset

    async def _fetch(self, options: Options, *, action: str) -> Optional[Dataset]:
        session = self._session
        session.error_message = None
        session.begin_action()
        try:
            return await load_dataset(self._service, options)
        except DatasetFetchFailed as exc:
            logger.warning("%s failed: %s", action, exc)
            session.error_message = self._error_message
            return None
        finally:
            session.end_action()
