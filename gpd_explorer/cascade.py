"""Field-change cascade for the interdependent kinematic parameters.

Editing one field changes which values are valid for the others:

- model / gpd  -> xbj choices and t choices (q2 range cleared),
- xbj          -> t choices and q2 range,
- t            -> xbj choices and q2 range,
- q2           -> nothing (leaf field).

Resolutions run concurrently with further edits. Each one is stamped with a
:class:`~gpd_explorer.sequencing.RequestToken` for every dependent field it
recomputes; when it completes, it writes only the fields for which its token is
still the latest. Older completions are dropped, never replayed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Tuple

from .domain_resolver import DomainResolver
from .errors import DomainUnavailable
from .input_convert import to_float
from .options import Domain, Gpd, Model, Options, TResolution, XbjResolution, find_choice, keep_or_first
from .sequencing import RequestSequencer, RequestToken
from .session import SessionState

logger = logging.getLogger(__name__)

XBJ_CHOICES = "xbj_choices"
T_CHOICES = "t_choices"
Q2_RANGE = "q2_range"

_MODEL_TARGETS: Tuple[str, ...] = (XBJ_CHOICES, T_CHOICES, Q2_RANGE)
_XBJ_TARGETS: Tuple[str, ...] = (T_CHOICES, Q2_RANGE)
_T_TARGETS: Tuple[str, ...] = (XBJ_CHOICES, Q2_RANGE)


class CascadeController:
    """Apply field edits and keep the resolved domains consistent.

    Parameters
    ----------
    resolver : DomainResolver
        Source of domain updates.
    session : SessionState
        Session whose options state this controller owns.
    cancel_superseded : bool, default=True
        Cancel an in-flight resolution when another one of the same kind
        (model, xbj or t) is issued. Correctness does not depend on it.

    Notes
    -----
    Every ``set_*`` coroutine returns ``True`` when its resolution was
    applied (fully or for the fields it still owned) and ``False`` when it was
    superseded, discarded as stale, or failed with
    :class:`~gpd_explorer.errors.DomainUnavailable`. Failures are reported
    through ``session.notice`` and leave the previous domain in place.
    """

    def __init__(self, resolver: DomainResolver, session: SessionState, *, cancel_superseded: bool = True) -> None:
        self._resolver = resolver
        self._session = session
        self._cancel_superseded = bool(cancel_superseded)
        self._sequencer = RequestSequencer()
        self._inflight: Dict[str, asyncio.Task[Any]] = {}

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def options(self) -> Options:
        return self._session.options_state.options

    @property
    def domain(self) -> Domain:
        return self._session.options_state.domain

    @property
    def pending(self) -> FrozenSet[str]:
        """Return the kinds (``"model"``, ``"xbj"``, ``"t"``) with a call in flight."""
        return frozenset(kind for kind, task in self._inflight.items() if not task.done())

    def latest_token(self, target: str) -> RequestToken | None:
        return self._sequencer.latest(target)

    # --- Field edits ---

    async def initialize(self) -> bool:
        """Resolve the domain for the current (model, gpd) pair."""
        return await self._resolve_model()

    async def set_model(self, model: Model | str) -> bool:
        self._session.options_state.update(model=Model.parse(model))
        return await self._resolve_model()

    async def set_gpd(self, gpd: Gpd | str) -> bool:
        self._session.options_state.update(gpd=Gpd.parse(gpd))
        return await self._resolve_model()

    async def set_xbj(self, xbj: Any) -> bool:
        """Select ``xbj`` (one of the current xbj choices) and resolve t / q2."""
        value = self._require_choice(self.domain.xbj_choices, xbj, "xbj")
        options = self._session.options_state.update(xbj=value)
        return await self._run(
            "xbj",
            _XBJ_TARGETS,
            lambda: self._resolver.resolve_for_xbj(options.model, options.gpd, value),
            self._apply_xbj,
        )

    async def set_t(self, t: Any) -> bool:
        """Select ``t`` (one of the current t choices) and resolve xbj / q2."""
        value = self._require_choice(self.domain.t_choices, t, "t")
        options = self._session.options_state.update(t=value)
        return await self._run(
            "t",
            _T_TARGETS,
            lambda: self._resolver.resolve_for_t(options.model, options.gpd, value),
            self._apply_t,
        )

    def set_q2(self, q2: Any) -> Options:
        """Set q2 directly; values outside a known q2 range are rejected."""
        value = to_float(q2, name="q2")
        if not self.domain.q2_contains(value):
            raise ValueError(f"q2={value:g} is outside the valid range {self.domain.q2_hint}.")
        return self._session.options_state.update(q2=value)

    async def cancel_pending(self) -> None:
        """Cancel every in-flight resolution and wait for them to unwind."""
        tasks = [task for task in self._inflight.values() if not task.done()]
        self._inflight.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # --- Plumbing ---

    async def _resolve_model(self) -> bool:
        options = self.options
        return await self._run(
            "model",
            _MODEL_TARGETS,
            lambda: self._resolver.resolve_for_model(options.model, options.gpd),
            self._apply_model,
        )

    @staticmethod
    def _require_choice(choices: Tuple[float, ...], raw: Any, name: str) -> float:
        value = to_float(raw, name=name)
        match = find_choice(choices, value)
        if match is None:
            raise ValueError(f"{name}={value:g} is not one of the valid {name} choices.")
        return match

    async def _run(
        self,
        kind: str,
        targets: Tuple[str, ...],
        query: Callable[[], Awaitable[Any]],
        apply: Callable[[Any, FrozenSet[str]], None],
    ) -> bool:
        token = self._sequencer.issue(targets)
        task = asyncio.ensure_future(query())
        previous = self._inflight.get(kind)
        self._inflight[kind] = task
        if self._cancel_superseded and previous is not None and not previous.done():
            previous.cancel()

        try:
            result = await task
        except asyncio.CancelledError:
            if task.cancelled() and self._inflight.get(kind) is not task:
                logger.debug("%s resolution %r superseded", kind, token)
                return False
            raise
        except DomainUnavailable as exc:
            if self._sequencer.current_targets(targets, token):
                logger.warning("%s resolution failed: %s", kind, exc)
                self._session.notice = f"Domain unavailable: {exc}"
            else:
                logger.debug("%s resolution %r failed after being superseded: %s", kind, token, exc)
            return False
        finally:
            if self._inflight.get(kind) is task:
                del self._inflight[kind]

        writable = self._sequencer.current_targets(targets, token)
        if not writable:
            logger.debug("%s resolution %r is stale; discarded", kind, token)
            return False
        if len(writable) < len(targets):
            logger.debug("%s resolution %r applies only to %s", kind, token, sorted(writable))
        apply(result, writable)
        self._session.notice = None
        return True

    def _apply_model(self, domain: Domain, writable: FrozenSet[str]) -> None:
        current = self.domain
        self._commit(
            Domain(
                xbj_choices=domain.xbj_choices if XBJ_CHOICES in writable else current.xbj_choices,
                t_choices=domain.t_choices if T_CHOICES in writable else current.t_choices,
                q2_range=None if Q2_RANGE in writable else current.q2_range,
            )
        )

    def _apply_xbj(self, res: XbjResolution, writable: FrozenSet[str]) -> None:
        current = self.domain
        self._commit(
            Domain(
                xbj_choices=current.xbj_choices,
                t_choices=res.t_choices if T_CHOICES in writable else current.t_choices,
                q2_range=res.q2_range if Q2_RANGE in writable else current.q2_range,
            )
        )

    def _apply_t(self, res: TResolution, writable: FrozenSet[str]) -> None:
        current = self.domain
        self._commit(
            Domain(
                xbj_choices=res.xbj_choices if XBJ_CHOICES in writable else current.xbj_choices,
                t_choices=current.t_choices,
                q2_range=res.q2_range if Q2_RANGE in writable else current.q2_range,
            )
        )

    def _commit(self, domain: Domain) -> None:
        """Install ``domain`` and pull the selection back inside it."""
        options = self.options
        options = options.replace(
            xbj=keep_or_first(domain.xbj_choices, options.xbj),
            t=keep_or_first(domain.t_choices, options.t),
            q2=domain.clamp_q2(options.q2),
        )
        self._session.options_state.commit(options=options, domain=domain)
