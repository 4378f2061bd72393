"""Single source of truth for the selected options and their valid domain."""

from __future__ import annotations

import logging
import warnings
from collections.abc import Hashable
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .options import DEFAULT_DOMAIN, DEFAULT_OPTIONS, Domain, Options

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateEvent:
    """Change notification emitted by :class:`OptionsState`.

    Parameters
    ----------
    reason : str
        ``"options"`` when the selection changed, ``"domain"`` when the valid
        domain changed.
    old : Options or Domain
        Value before the change.
    new : Options or Domain
        Value after the change.
    """

    reason: str
    old: Any
    new: Any


class OptionsState:
    """Hold the current :class:`Options` snapshot and :class:`Domain`.

    Both values are immutable; updates swap in a new value and notify
    observers. Readers that captured a snapshot keep seeing it unchanged.
    """

    def __init__(self, options: Options = DEFAULT_OPTIONS, domain: Domain = DEFAULT_DOMAIN) -> None:
        self._options = options
        self._domain = domain
        self._observers: Dict[Hashable, Callable[[StateEvent], Any]] = {}
        self._observer_counter = 0

    @property
    def options(self) -> Options:
        return self._options

    @property
    def domain(self) -> Domain:
        return self._domain

    @property
    def q2_hint(self) -> str:
        return self._domain.q2_hint

    def snapshot(self) -> Options:
        """Return the current options value; it will never change afterwards."""
        return self._options

    def set_options(self, options: Options) -> Options:
        self.commit(options=options)
        return self._options

    def update(self, **changes: Any) -> Options:
        """Replace individual option fields and return the new snapshot."""
        return self.set_options(self._options.replace(**changes))

    def set_domain(self, domain: Domain) -> Domain:
        self.commit(domain=domain)
        return self._domain

    def commit(self, *, options: Optional[Options] = None, domain: Optional[Domain] = None) -> None:
        """Swap in a new domain and/or options, then notify observers.

        Both values are replaced before any observer runs, so observers never
        see a selection that belongs to the previous domain.
        """
        events = []
        if domain is not None and domain != self._domain:
            events.append(StateEvent("domain", self._domain, domain))
            self._domain = domain
            logger.debug("domain replaced (xbj=%d, t=%d, q2=%s)",
                         len(domain.xbj_choices), len(domain.t_choices), domain.q2_range)
        if options is not None and options != self._options:
            events.append(StateEvent("options", self._options, options))
            self._options = options
            logger.debug("options -> %s", options)
        for event in events:
            self._notify(event)

    def observe(self, callback: Callable[[StateEvent], Any], observer_id: Optional[Hashable] = None) -> Hashable:
        """
        Register a callback run after every options or domain change.

        Returns
        -------
        Hashable
            The observer id (``"observer:N"`` unless one was given).
        """
        if observer_id is None:
            self._observer_counter += 1
            observer_id = f"observer:{self._observer_counter}"
        self._observers[observer_id] = callback
        return observer_id

    def unobserve(self, observer_id: Hashable) -> None:
        self._observers.pop(observer_id, None)

    def _notify(self, event: StateEvent) -> None:
        for o_id, callback in list(self._observers.items()):
            try:
                callback(event)
            except Exception as e:
                warnings.warn(f"Observer {o_id} failed: {e}")
