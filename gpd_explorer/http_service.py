"""HTTP client for the GPD model and dataset service.

Routes, relative to ``ExplorerConfig.base_url``::

    GET api/{model}/{gpd}/domain            -> {"xbj": [...], "t": [...]}
    GET api/{model}/{gpd}/xbj/{xbj}         -> {"t": [...], "q2MinMax": [lo, hi]}
    GET api/{model}/{gpd}/t/{t}             -> {"xbj": [...], "q2MinMax": [lo, hi]}
    GET api/{model}/{gpd}/{xbj}/{t}/{q2}    -> [{"x":..,"u":..,"d":..,"xu":..,"xd":..}, ...]

``requests`` is blocking, so each call runs in a worker thread via
:func:`asyncio.to_thread` and resumes on the event loop. ``requests.Session``
is not documented as thread-safe: the client keeps one session per worker
thread, and a session passed in by the caller is used by one thread at a time.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Optional
from urllib.parse import urljoin

import requests

from .config import ExplorerConfig
from .options import Gpd, Model, Options

logger = logging.getLogger(__name__)


def _num(value: float) -> str:
    return repr(float(value))


class HttpModelService:
    """Implements both the model-domain and the dataset service protocols.

    Parameters
    ----------
    config : ExplorerConfig, optional
        Base URL and timeout; defaults to ``ExplorerConfig()``.
    session : requests.Session, optional
        Session to reuse (tests inject a mock here). Requests through it are
        serialized; without one, each worker thread gets its own session.
    """

    def __init__(self, config: Optional[ExplorerConfig] = None, *, session: Optional[requests.Session] = None) -> None:
        self._config = config or ExplorerConfig()
        self._shared = session
        self._shared_lock = threading.Lock()
        self._local = threading.local()
        self._owned: list[requests.Session] = []
        self._owned_lock = threading.Lock()

    @property
    def config(self) -> ExplorerConfig:
        return self._config

    def close(self) -> None:
        with self._owned_lock:
            owned, self._owned = self._owned, []
        for s in owned:
            s.close()
        if self._shared is not None:
            self._shared.close()

    def url_for(self, *parts: Any) -> str:
        path = "/".join(str(p) for p in ("api", *parts))
        return urljoin(self._config.base_url, path)

    # --- Model domain service ---

    async def model_domain(self, model: Model, gpd: Gpd) -> Any:
        return await self._get(model.value, gpd.value, "domain")

    async def domain_for_xbj(self, model: Model, gpd: Gpd, xbj: float) -> Any:
        return await self._get(model.value, gpd.value, "xbj", _num(xbj))

    async def domain_for_t(self, model: Model, gpd: Gpd, t: float) -> Any:
        return await self._get(model.value, gpd.value, "t", _num(t))

    # --- Dataset service ---

    async def fetch_dataset(self, options: Options) -> Any:
        return await self._get(
            options.model.value,
            options.gpd.value,
            _num(options.xbj),
            _num(options.t),
            _num(options.q2),
        )

    async def _get(self, *parts: Any) -> Any:
        url = self.url_for(*parts)
        return await asyncio.to_thread(self._get_json, url)

    def _get_json(self, url: str) -> Any:
        logger.debug("GET %s", url)
        if self._shared is not None:
            with self._shared_lock:
                return self._request(self._shared, url)
        return self._request(self._thread_session(), url)

    def _request(self, session: requests.Session, url: str) -> Any:
        r = session.get(url, timeout=self._config.timeout_s)
        r.raise_for_status()
        return r.json()

    def _thread_session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._owned_lock:
                self._owned.append(session)
        return session
