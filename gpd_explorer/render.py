"""Plotly rendering of the datasets accumulated on a tab."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Callable, Dict, Optional

import plotly.graph_objects as go

from .options import Dataset, dataset_columns

logger = logging.getLogger(__name__)

# (label, y column); x is always the "x" column.
GPD_TRACES: tuple[tuple[str, str], ...] = (("GPD Up", "xu"), ("GPD Down", "xd"))

DEFAULT_LAYOUT: Dict[str, object] = {
    "autosize": False,
    "width": 650,
    "height": 400,
    "font": {"size": 12},
    "yaxis": {"title": {"text": "GPD"}},
}


def dataset_traces(dataset: Dataset, *, index: int = 0) -> list[go.Scatter]:
    """Return the up/down line traces for one dataset."""
    cols = dataset_columns(dataset)
    suffix = "" if index == 0 else f" #{index + 1}"
    return [
        go.Scatter(
            x=cols["x"],
            y=cols[column],
            mode="lines",
            name=f"{label}{suffix}",
            fill="tozerox",
        )
        for label, column in GPD_TRACES
    ]


def build_figure(datasets: Sequence[Dataset]) -> go.Figure:
    """Build one figure overlaying ``datasets`` in plot order."""
    fig = go.Figure(layout=DEFAULT_LAYOUT)
    for i, dataset in enumerate(datasets):
        fig.add_traces(dataset_traces(dataset, index=i))
    return fig


class PlotlyRenderer:
    """Keep the latest figure per tab and forward it to an optional sink.

    Parameters
    ----------
    on_figure : callable, optional
        Called as ``on_figure(tab_id, figure)`` after each render, e.g. to
        copy the figure into a notebook widget.
    """

    def __init__(self, on_figure: Optional[Callable[[int, go.Figure], None]] = None) -> None:
        self._figures: Dict[int, go.Figure] = {}
        self._on_figure = on_figure

    @property
    def figures(self) -> Dict[int, go.Figure]:
        return dict(self._figures)

    def figure_for(self, tab_id: int) -> Optional[go.Figure]:
        return self._figures.get(tab_id)

    def render(self, tab_id: int, datasets: Sequence[Dataset]) -> go.Figure:
        fig = build_figure(datasets)
        self._figures[tab_id] = fig
        logger.debug("render tab=%d traces=%d", tab_id, len(fig.data))
        if self._on_figure is not None:
            self._on_figure(tab_id, fig)
        return fig
