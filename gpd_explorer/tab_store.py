"""Per-tab accumulation of plotted datasets.

The store owns one growable list of datasets per display tab:

- tabs are created strictly in order and never removed,
- datasets are only ever appended, so later plots overlay earlier ones,
- readers receive tuples, never the live lists.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from .errors import InvalidTabId
from .options import Dataset

logger = logging.getLogger(__name__)


class TabDataStore:
    """Own the ``tab id -> datasets`` mapping for one session.

    Parameters
    ----------
    initial_tabs : int, default=1
        Number of tabs that exist up front. The notebook panel starts with a
        single tab, id ``0``.
    """

    def __init__(self, *, initial_tabs: int = 1) -> None:
        if initial_tabs < 0:
            raise ValueError("initial_tabs must be >= 0")
        self._tabs: list[list[Dataset]] = [[] for _ in range(initial_tabs)]

    @property
    def tab_count(self) -> int:
        return len(self._tabs)

    @property
    def max_tab_id(self) -> int:
        """Return the highest existing tab id (``-1`` when there is none)."""
        return len(self._tabs) - 1

    def __len__(self) -> int:
        return len(self._tabs)

    def __iter__(self) -> Iterator[int]:
        return iter(range(len(self._tabs)))

    def __contains__(self, tab_id: object) -> bool:
        return isinstance(tab_id, int) and 0 <= tab_id < len(self._tabs)

    def check_tab(self, tab_id: int) -> None:
        """Raise ``InvalidTabId`` unless ``ensure_tab(tab_id)`` would succeed.

        The store is not modified.
        """
        if isinstance(tab_id, bool) or not isinstance(tab_id, int) or tab_id < 0:
            raise InvalidTabId(tab_id, self.max_tab_id)
        if tab_id > len(self._tabs):
            raise InvalidTabId(tab_id, self.max_tab_id)

    def ensure_tab(self, tab_id: int) -> None:
        """Create ``tab_id`` if it is the next tab in sequence.

        Raises
        ------
        InvalidTabId
            If ``tab_id`` is negative, not an int, or more than one past the
            current maximum.
        """
        self.check_tab(tab_id)
        if tab_id == len(self._tabs):
            self._tabs.append([])
            logger.debug("created tab %d", tab_id)

    def append(self, tab_id: int, dataset: Dataset) -> int:
        """Append ``dataset`` to ``tab_id`` and return the tab's new length."""
        target = self._require(tab_id)
        target.append(tuple(dataset))
        return len(target)

    def datasets_for(self, tab_id: int) -> tuple[Dataset, ...]:
        """Return the datasets of ``tab_id`` in plot order."""
        return tuple(self._require(tab_id))

    def _require(self, tab_id: int) -> list[Dataset]:
        if tab_id not in self:
            raise InvalidTabId(tab_id, self.max_tab_id)
        return self._tabs[tab_id]
