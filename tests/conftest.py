from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, Hashable, List, Set, Tuple

import pytest

_START = Path(__file__).resolve().parent
_repo_root = _START
while _repo_root != _repo_root.parent and not (_repo_root / "gpd_explorer" / "__init__.py").exists():
    _repo_root = _repo_root.parent

sys.path.insert(0, str(_repo_root))

from gpd_explorer.options import DEFAULT_T_CHOICES, DEFAULT_XBJ_CHOICES, Gpd, Model, Options  # noqa: E402


class _Gated:
    """Calls are recorded and may be held on an ``asyncio.Event`` until released."""

    def __init__(self) -> None:
        self.calls: List[Tuple[Any, ...]] = []
        self._gates: Dict[Hashable, asyncio.Event] = {}
        self.failures: Set[Hashable] = set()

    def hold(self, key: Hashable) -> None:
        self._gates[key] = asyncio.Event()

    def release(self, key: Hashable) -> None:
        self._gates[key].set()

    def fail(self, key: Hashable) -> None:
        self.failures.add(key)

    async def _enter(self, key: Hashable) -> None:
        self.calls.append(key)
        gate = self._gates.get(key)
        if gate is not None:
            await gate.wait()
        if key in self.failures:
            raise ConnectionError(f"service unreachable for {key!r}")


class ScriptedModelService(_Gated):
    """Model domain service answering from fixed tables.

    Keys: ``("model", model, gpd)``, ``("xbj", model, gpd, xbj)``,
    ``("t", model, gpd, t)``.
    """

    domains: Dict[Tuple[Model, Gpd], Dict[str, Any]] = {
        (Model.BKM, Gpd.E): {"xbj": list(DEFAULT_XBJ_CHOICES), "t": list(DEFAULT_T_CHOICES)},
        (Model.BKM, Gpd.H): {"xbj": [0.0001, 0.001, 0.01], "t": list(DEFAULT_T_CHOICES)},
        (Model.UVA, Gpd.E): {"xbj": [0.001, 0.01, 0.1], "t": [-0.2, -0.4]},
        (Model.UVA, Gpd.H): {"xbj": [0.1, 0.2], "t": [-0.5, -1.0]},
    }

    async def model_domain(self, model: Model, gpd: Gpd) -> Dict[str, Any]:
        await self._enter(("model", model, gpd))
        return dict(self.domains[(model, gpd)])

    async def domain_for_xbj(self, model: Model, gpd: Gpd, xbj: float) -> Dict[str, Any]:
        await self._enter(("xbj", model, gpd, xbj))
        if xbj == 0.01:
            return {"t": list(DEFAULT_T_CHOICES), "q2MinMax": [0.05, 2.0]}
        return {"t": [-0.2, -0.4, -0.6], "q2MinMax": [0.1, 5.0]}

    async def domain_for_t(self, model: Model, gpd: Gpd, t: float) -> Dict[str, Any]:
        await self._enter(("t", model, gpd, t))
        return {"xbj": list(self.domains[(model, gpd)]["xbj"]), "q2MinMax": [0.05, 1.5]}


def rows_for(options: Options, n: int = 4) -> List[Dict[str, float]]:
    """Deterministic table whose values identify the options that produced it."""
    rows = []
    for i in range(n):
        x = -1.0 + 2.0 * i / (n - 1)
        rows.append({"x": x, "u": options.q2 * x, "d": options.t * x, "xu": x * options.xbj, "xd": -x * options.xbj})
    return rows


class ScriptedDatasetService(_Gated):
    """Dataset service keyed by ``Options``."""

    async def fetch_dataset(self, options: Options) -> List[Dict[str, float]]:
        await self._enter(options)
        return rows_for(options)


class RecordingRenderer:
    def __init__(self) -> None:
        self.calls: List[Tuple[int, int]] = []

    def render(self, tab_id: int, datasets: Any) -> None:
        self.calls.append((tab_id, len(datasets)))


class RecordingExporter:
    def __init__(self) -> None:
        self.calls: List[Tuple[Any, str]] = []

    def export(self, dataset: Any, filename: str) -> None:
        self.calls.append((dataset, filename))


@pytest.fixture
def model_service() -> ScriptedModelService:
    return ScriptedModelService()


@pytest.fixture
def dataset_service() -> ScriptedDatasetService:
    return ScriptedDatasetService()


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def exporter() -> RecordingExporter:
    return RecordingExporter()
