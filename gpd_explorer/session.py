"""Explicit session state shared by the controller and the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .options import Dataset, Domain, Options
from .options_state import OptionsState
from .tab_store import TabDataStore


@dataclass
class SessionState:
    """Everything a UI shell needs to read for one exploration session.

    Parameters
    ----------
    options_state : OptionsState
        Current selection and valid domain.
    tabs : TabDataStore
        Datasets accumulated per display tab.
    selected_tab : int
        Tab targeted by ``plot`` when no tab is passed explicitly.
    error_message : str or None
        User-visible error from the last failed Plot/Download.
    notice : str or None
        Non-fatal notice, e.g. a domain that could not be resolved.
    download_buffer : Dataset or None
        Dataset fetched by the most recent successful Download.
    """

    options_state: OptionsState = field(default_factory=OptionsState)
    tabs: TabDataStore = field(default_factory=TabDataStore)
    selected_tab: int = 0
    error_message: Optional[str] = None
    notice: Optional[str] = None
    download_buffer: Optional[Dataset] = None
    _in_flight: int = field(default=0, init=False, repr=False)

    @property
    def options(self) -> Options:
        return self.options_state.options

    @property
    def domain(self) -> Domain:
        return self.options_state.domain

    @property
    def busy(self) -> bool:
        """True while at least one Plot/Download is in flight."""
        return self._in_flight > 0

    def begin_action(self) -> None:
        self._in_flight += 1

    def end_action(self) -> None:
        self._in_flight = max(0, self._in_flight - 1)
