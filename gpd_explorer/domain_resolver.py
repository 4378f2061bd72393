"""Resolution of valid kinematic domains against an external model service."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from .errors import DomainUnavailable
from .options import Domain, Gpd, Model, TResolution, XbjResolution

logger = logging.getLogger(__name__)


@runtime_checkable
class ModelService(Protocol):
    """Async queries answered by the model domain service.

    Payloads use the service's keys: ``xbj`` and ``t`` for choice lists and
    ``q2MinMax`` for the ``[min, max]`` q2 range.
    """

    async def model_domain(self, model: Model, gpd: Gpd) -> Mapping[str, Any]: ...

    async def domain_for_xbj(self, model: Model, gpd: Gpd, xbj: float) -> Mapping[str, Any]: ...

    async def domain_for_t(self, model: Model, gpd: Gpd, t: float) -> Mapping[str, Any]: ...


class DomainResolver:
    """Turn model-service payloads into validated domain values.

    Every failure, whether raised by the service or detected while validating
    its payload, surfaces as :class:`DomainUnavailable`. Callers never see a
    partially built domain.
    """

    def __init__(self, service: ModelService) -> None:
        self._service = service

    @property
    def service(self) -> ModelService:
        return self._service

    async def resolve_for_model(self, model: Model | str, gpd: Gpd | str) -> Domain:
        """Return the full xbj/t domain for a (model, gpd) pair."""
        model, gpd = Model.parse(model), Gpd.parse(gpd)
        payload = await self._query("model domain", self._service.model_domain, model, gpd)
        return self._build(
            "model domain",
            lambda: Domain(
                xbj_choices=_field(payload, "xbj"),
                t_choices=_field(payload, "t"),
                q2_range=None,
            ),
        )

    async def resolve_for_xbj(self, model: Model | str, gpd: Gpd | str, xbj: float) -> XbjResolution:
        """Return the t choices and q2 range that remain valid for ``xbj``."""
        model, gpd = Model.parse(model), Gpd.parse(gpd)
        payload = await self._query("xbj domain", self._service.domain_for_xbj, model, gpd, xbj)
        return self._build(
            "xbj domain",
            lambda: XbjResolution(
                t_choices=_field(payload, "t"),
                q2_range=_field(payload, "q2MinMax"),
            ),
        )

    async def resolve_for_t(self, model: Model | str, gpd: Gpd | str, t: float) -> TResolution:
        """Return the xbj choices and q2 range that remain valid for ``t``."""
        model, gpd = Model.parse(model), Gpd.parse(gpd)
        payload = await self._query("t domain", self._service.domain_for_t, model, gpd, t)
        return self._build(
            "t domain",
            lambda: TResolution(
                xbj_choices=_field(payload, "xbj"),
                q2_range=_field(payload, "q2MinMax"),
            ),
        )

    async def _query(self, what: str, method: Any, *args: Any) -> Mapping[str, Any]:
        try:
            payload = await method(*args)
        except DomainUnavailable:
            raise
        except Exception as exc:
            raise DomainUnavailable(f"{what} request failed: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise DomainUnavailable(f"{what} response is not a mapping: {payload!r}")
        logger.debug("%s payload keys=%s", what, sorted(payload))
        return payload

    @staticmethod
    def _build(what: str, factory: Any) -> Any:
        try:
            return factory()
        except (KeyError, TypeError, ValueError) as exc:
            raise DomainUnavailable(f"{what} response is invalid: {exc}") from exc


def _field(payload: Mapping[str, Any], key: str) -> Any:
    if key not in payload:
        raise KeyError(f"missing {key!r}")
    value = payload[key]
    if isinstance(value, (str, bytes)):
        raise TypeError(f"{key!r} must be a sequence of numbers, got {value!r}")
    return value
