"""Top-level public API for the ``gpd_explorer`` package.

The package keeps the selection form of a GPD model explorer consistent while
domain lookups and dataset fetches run concurrently:

>>> from gpd_explorer import SessionState, CascadeController, DomainResolver  # doctest: +SKIP
>>> from gpd_explorer import FetchOrchestrator, HttpModelService  # doctest: +SKIP

It exposes the core (controller, orchestrator, stores and value types), the
default HTTP client and the notebook panel.
"""

import logging

from .cascade import CascadeController
from .config import ExplorerConfig
from .domain_resolver import DomainResolver, ModelService
from .errors import DatasetFetchFailed, DomainUnavailable, InvalidTabId
from .export import CsvExporter, dataset_to_csv
from .fetch import DatasetService, Exporter, FetchOrchestrator, Renderer, load_dataset
from .http_service import HttpModelService
from .input_convert import to_float, to_number
from .options import (
    DEFAULT_DOMAIN,
    DEFAULT_OPTIONS,
    DataPoint,
    Dataset,
    Domain,
    Gpd,
    Model,
    Options,
    TResolution,
    XbjResolution,
    dataset_columns,
    make_dataset,
)
from .options_state import OptionsState, StateEvent
from .panel import ExplorerPanel
from .render import PlotlyRenderer, build_figure
from .sequencing import RequestSequencer, RequestToken
from .session import SessionState
from .tab_store import TabDataStore

# Importing the package never configures logging; enable it with logging.basicConfig.
logging.getLogger(__name__).addHandler(logging.NullHandler())
