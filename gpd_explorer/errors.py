"""Error taxonomy shared by the explorer core.

``DomainUnavailable`` and ``DatasetFetchFailed`` are recoverable conditions
that the controller/orchestrator turn into user-visible messages.
``InvalidTabId`` signals that the tab UI and the data store disagree and is
always raised to the caller.
"""

from __future__ import annotations


class DomainUnavailable(RuntimeError):
    """A domain resolution call failed or returned an unusable payload."""


class DatasetFetchFailed(RuntimeError):
    """The dataset service could not produce a dataset for the options."""


class InvalidTabId(ValueError):
    """A tab id is negative or skips ahead of the existing tabs."""

    def __init__(self, tab_id: int, max_tab_id: int) -> None:
        super().__init__(
            f"Invalid tab id {tab_id!r}; tabs must be created in order "
            f"(current maximum is {max_tab_id})."
        )
        self.tab_id = tab_id
        self.max_tab_id = max_tab_id
