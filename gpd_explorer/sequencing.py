"""Request tokens used to discard stale asynchronous completions."""

from __future__ import annotations

import itertools
from collections.abc import Iterable
from dataclasses import dataclass
from functools import total_ordering


@total_ordering
@dataclass(frozen=True)
class RequestToken:
    """Opaque, totally ordered stamp attached to one issued request."""

    seq: int

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RequestToken):
            return NotImplemented
        return self.seq < other.seq

    def __repr__(self) -> str:
        return f"RequestToken({self.seq})"


class RequestSequencer:
    """Issue increasing tokens and remember the latest one per dependent field.

    A request touching several dependent fields (for example a model change,
    which recomputes both xbj and t choices) stamps all of them with the same
    token. A completion may then write a field only while its token is still
    the latest issued for that field.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest: dict[str, RequestToken] = {}

    def issue(self, targets: Iterable[str]) -> RequestToken:
        """Return a fresh token and record it as latest for every target."""
        token = RequestToken(next(self._counter))
        for target in targets:
            self._latest[target] = token
        return token

    def latest(self, target: str) -> RequestToken | None:
        return self._latest.get(target)

    def is_current(self, target: str, token: RequestToken) -> bool:
        """Return True when no newer request has been issued for ``target``."""
        latest = self._latest.get(target)
        return latest is None or not (token < latest)

    def current_targets(self, targets: Iterable[str], token: RequestToken) -> frozenset[str]:
        """Return the subset of ``targets`` that ``token`` may still write."""
        return frozenset(t for t in targets if self.is_current(t, token))
