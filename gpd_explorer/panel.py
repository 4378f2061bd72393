"""Notebook form for the explorer.

This module builds the ipywidgets tree (selection form, action buttons and a
tab strip of Plotly figure widgets) and wires it to a
:class:`~gpd_explorer.cascade.CascadeController` and a
:class:`~gpd_explorer.fetch.FetchOrchestrator`.

Widget callbacks never mutate state directly: they schedule the matching
coroutine on the running event loop (the kernel's loop in Jupyter), and the
panel re-syncs itself from the session through :meth:`ExplorerPanel.refresh`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, List, Optional, Set

import ipywidgets as widgets
import plotly.graph_objects as go
from IPython.display import display

from .cascade import CascadeController
from .config import ExplorerConfig
from .domain_resolver import DomainResolver, ModelService
from .export import CsvExporter
from .fetch import DatasetService, Exporter, FetchOrchestrator
from .options import Gpd, Model, find_choice
from .options_state import StateEvent
from .render import DEFAULT_LAYOUT, PlotlyRenderer
from .session import SessionState

logger = logging.getLogger(__name__)


class ExplorerPanel:
    """Selection form, Plot/Download actions and per-tab figures.

    Parameters
    ----------
    model_service : ModelService
        Answers domain queries.
    dataset_service : DatasetService
        Produces datasets for Plot/Download.
    config : ExplorerConfig, optional
    exporter : Exporter, optional
        Defaults to a :class:`CsvExporter` writing into the working directory.
    session : SessionState, optional
        Existing session to attach to.

    Examples
    --------
    >>> from gpd_explorer import ExplorerConfig, HttpModelService  # doctest: +SKIP
    >>> svc = HttpModelService(ExplorerConfig.from_env())  # doctest: +SKIP
    >>> panel = ExplorerPanel(svc, svc)  # doctest: +SKIP
    >>> panel.show()  # doctest: +SKIP
    >>> await panel.controller.initialize()  # doctest: +SKIP
    """

    def __init__(
        self,
        model_service: ModelService,
        dataset_service: DatasetService,
        *,
        config: Optional[ExplorerConfig] = None,
        exporter: Optional[Exporter] = None,
        session: Optional[SessionState] = None,
    ) -> None:
        self._config = config or ExplorerConfig()
        self._session = session or SessionState()
        self._renderer = PlotlyRenderer(on_figure=self._show_figure)
        self._controller = CascadeController(
            DomainResolver(model_service),
            self._session,
            cancel_superseded=self._config.cancel_superseded,
        )
        self._orchestrator = FetchOrchestrator(
            dataset_service,
            self._session,
            renderer=self._renderer,
            exporter=exporter if exporter is not None else CsvExporter(),
            download_filename=self._config.download_filename,
            error_message=self._config.error_message,
        )
        self._syncing = False
        self._tasks: Set[asyncio.Task[Any]] = set()
        self._figure_widgets: List[go.FigureWidget] = []

        self._build_widgets()
        self._session.options_state.observe(self._on_state_change, observer_id="panel")
        self.refresh()

    # --- Public surface ---

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def controller(self) -> CascadeController:
        return self._controller

    @property
    def orchestrator(self) -> FetchOrchestrator:
        return self._orchestrator

    @property
    def renderer(self) -> PlotlyRenderer:
        return self._renderer

    @property
    def widget(self) -> widgets.Widget:
        return self._root

    @property
    def figure_widgets(self) -> List[go.FigureWidget]:
        return list(self._figure_widgets)

    def show(self) -> None:
        display(self._root)

    async def wait_idle(self) -> None:
        """Wait until every scheduled widget action has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def refresh(self) -> None:
        """Re-sync every widget from the session without firing callbacks."""
        session = self._session
        options, domain = session.options, session.domain
        self._syncing = True
        try:
            self.gpd.value = options.gpd
            self.model.value = options.model
            self._sync_choices(self.xbj, domain.xbj_choices, options.xbj)
            self._sync_choices(self.t, domain.t_choices, options.t)
            if self.q2.value.strip() == "" or self._q2_text_value() != options.q2:
                self.q2.value = f"{options.q2:g}"
            self.q2_hint.value = domain.q2_hint
            self._sync_tabs()
            busy = session.busy
            self.plot_button.disabled = busy
            self.download_button.disabled = busy
            self.status.value = "Loading..." if busy else ""
            self.message.value = session.error_message or session.notice or ""
        finally:
            self._syncing = False

    # --- Layout ---

    def _build_widgets(self) -> None:
        self.gpd = widgets.Dropdown(
            options=[(g.label, g) for g in Gpd], description="Select GPD:"
        )
        self.model = widgets.Dropdown(
            options=[(m.label, m) for m in Model], description="Model:"
        )
        self.xbj = widgets.Dropdown(options=[], description="xbj:")
        self.t = widgets.Dropdown(options=[], description="t:")
        self.q2 = widgets.Text(value="", description="q2:", placeholder="Input a number", continuous_update=False)
        self.q2_hint = widgets.Label(value="")
        self.plot_button = widgets.Button(description="Plot", icon="line-chart")
        self.download_button = widgets.Button(description="Download", icon="download")
        self.new_tab_button = widgets.Button(description="New tab", icon="plus")
        self.status = widgets.Label(value="")
        self.message = widgets.Label(value="")
        self.tabs = widgets.Tab(children=[])

        self.gpd.observe(self._on_gpd, names="value")
        self.model.observe(self._on_model, names="value")
        self.xbj.observe(self._on_xbj, names="value")
        self.t.observe(self._on_t, names="value")
        self.q2.observe(self._on_q2, names="value")
        self.tabs.observe(self._on_tab_selected, names="selected_index")
        self.plot_button.on_click(self._on_plot)
        self.download_button.on_click(self._on_download)
        self.new_tab_button.on_click(self._on_new_tab)

        form = widgets.VBox(
            [
                self.gpd,
                self.model,
                widgets.HTML("<b>Kinematic Parameters</b>"),
                self.xbj,
                self.t,
                widgets.HBox([self.q2, self.q2_hint]),
                widgets.HBox([self.plot_button, self.download_button, self.new_tab_button, self.status]),
                self.message,
            ]
        )
        self._root = widgets.VBox([form, self.tabs])

    def _sync_choices(self, dropdown: widgets.Dropdown, choices: tuple[float, ...], value: float) -> None:
        if tuple(dropdown.options) != tuple(choices):
            dropdown.options = list(choices)
        match = find_choice(choices, value)
        if match is not None:
            dropdown.value = match

    def _sync_tabs(self) -> None:
        while len(self._figure_widgets) < self._session.tabs.tab_count:
            i = len(self._figure_widgets)
            self._figure_widgets.append(go.FigureWidget(layout=DEFAULT_LAYOUT))
            self.tabs.children = tuple(self._figure_widgets)
            self.tabs.set_title(i, f"Plot {i + 1}")
        if self._figure_widgets and self.tabs.selected_index != self._session.selected_tab:
            self.tabs.selected_index = self._session.selected_tab

    def _show_figure(self, tab_id: int, fig: go.Figure) -> None:
        self._sync_tabs()
        fw = self._figure_widgets[tab_id]
        fw.data = ()
        fw.add_traces([trace.to_plotly_json() for trace in fig.data])
        fw.update_layout(fig.layout.to_plotly_json())

    def _q2_text_value(self) -> Optional[float]:
        try:
            return float(self.q2.value)
        except ValueError:
            return None

    # --- Callbacks ---

    def _spawn(self, action: Coroutine[Any, Any, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            action.close()
            raise RuntimeError("ExplorerPanel actions need a running event loop (e.g. a Jupyter kernel).") from None
        task = loop.create_task(self._run_action(action))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_action(self, action: Coroutine[Any, Any, Any]) -> None:
        try:
            await action
        except ValueError as exc:
            logger.info("rejected input: %s", exc)
            self._session.notice = str(exc)
        except Exception as exc:
            logger.exception("widget action failed")
            self._session.notice = f"Action failed: {exc}"
        finally:
            self.refresh()

    def _on_state_change(self, _event: StateEvent) -> None:
        if not self._syncing:
            self.refresh()

    def _on_gpd(self, change: dict[str, Any]) -> None:
        if not self._syncing:
            self._spawn(self._controller.set_gpd(change["new"]))

    def _on_model(self, change: dict[str, Any]) -> None:
        if not self._syncing:
            self._spawn(self._controller.set_model(change["new"]))

    def _on_xbj(self, change: dict[str, Any]) -> None:
        if not self._syncing and change["new"] is not None:
            self._spawn(self._controller.set_xbj(change["new"]))

    def _on_t(self, change: dict[str, Any]) -> None:
        if not self._syncing and change["new"] is not None:
            self._spawn(self._controller.set_t(change["new"]))

    def _on_q2(self, change: dict[str, Any]) -> None:
        if self._syncing:
            return
        try:
            self._controller.set_q2(change["new"])
            self._session.notice = None
        except ValueError as exc:
            self._session.notice = str(exc)
        self.refresh()

    def _on_tab_selected(self, change: dict[str, Any]) -> None:
        if not self._syncing and change["new"] is not None:
            self._session.selected_tab = int(change["new"])

    def _on_plot(self, _button: widgets.Button) -> None:
        self._show_loading()
        self._spawn(self._orchestrator.plot())

    def _on_download(self, _button: widgets.Button) -> None:
        self._show_loading()
        self._spawn(self._orchestrator.download())

    def _show_loading(self) -> None:
        self.plot_button.disabled = True
        self.download_button.disabled = True
        self.status.value = "Loading..."

    def _on_new_tab(self, _button: widgets.Button) -> None:
        tabs = self._session.tabs
        tabs.ensure_tab(tabs.tab_count)
        self._session.selected_tab = tabs.max_tab_id
        self.refresh()
