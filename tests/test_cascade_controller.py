"""Cascade behaviour of the kinematic fields, including response races."""

from __future__ import annotations

import asyncio

import pytest

from gpd_explorer.cascade import CascadeController, Q2_RANGE, T_CHOICES, XBJ_CHOICES
from gpd_explorer.domain_resolver import DomainResolver
from gpd_explorer.options import DEFAULT_T_CHOICES, DEFAULT_XBJ_CHOICES, Gpd, Model, Options
from gpd_explorer.options_state import OptionsState
from gpd_explorer.session import SessionState


def _controller(model_service, *, options: Options | None = None, cancel_superseded: bool = True):
    session = SessionState(options_state=OptionsState(options or Options()))
    return CascadeController(DomainResolver(model_service), session, cancel_superseded=cancel_superseded), session


def test_bkm_gpd_e_example_walkthrough(model_service) -> None:
    async def scenario():
        ctl, session = _controller(model_service)
        assert await ctl.initialize() is True
        assert session.domain.xbj_choices[0] == 0.0001
        assert session.domain.xbj_choices[-1] == 0.6

        assert await ctl.set_xbj(0.01) is True
        assert session.domain.t_choices == DEFAULT_T_CHOICES
        assert session.domain.q2_range == (0.05, 2.0)
        assert session.domain.q2_hint == "(0.05 to 2)"
        t_choices = session.domain.t_choices

        calls_before = len(model_service.calls)
        assert await ctl.set_t(-0.3) is True
        assert model_service.calls[calls_before:] == [("t", Model.BKM, Gpd.E, -0.3)]
        assert session.domain.t_choices == t_choices
        assert session.domain.xbj_choices == DEFAULT_XBJ_CHOICES
        assert session.domain.q2_range == (0.05, 1.5)
        assert session.options.xbj == 0.01
        assert session.options.t == -0.3

    asyncio.run(scenario())


def test_xbj_change_touches_only_t_choices_and_q2_range(model_service) -> None:
    async def scenario():
        ctl, session = _controller(model_service)
        await ctl.initialize()

        assert await ctl.set_xbj(0.1)

        assert session.domain.xbj_choices == DEFAULT_XBJ_CHOICES
        assert session.domain.t_choices == (-0.2, -0.4, -0.6)
        assert session.domain.q2_range == (0.1, 5.0)
        # -0.1 is no longer valid, so the selection falls back to the first choice
        assert session.options.t == -0.2

    asyncio.run(scenario())


def test_stale_response_for_same_field_is_discarded(model_service) -> None:
    async def scenario():
        ctl, session = _controller(model_service, cancel_superseded=False)
        await ctl.initialize()
        slow = ("xbj", Model.BKM, Gpd.E, 0.01)
        model_service.hold(slow)

        first = asyncio.create_task(ctl.set_xbj(0.01))
        await asyncio.sleep(0)
        assert await ctl.set_xbj(0.1) is True
        applied = session.domain

        model_service.release(slow)
        assert await first is False

        assert session.domain == applied
        assert session.domain.t_choices == (-0.2, -0.4, -0.6)
        assert session.domain.q2_range == (0.1, 5.0)
        assert session.options.xbj == 0.1
        assert slow in model_service.calls

    asyncio.run(scenario())


def test_superseded_call_is_cancelled_when_enabled(model_service) -> None:
    async def scenario():
        ctl, session = _controller(model_service, cancel_superseded=True)
        await ctl.initialize()
        slow = ("t", Model.BKM, Gpd.E, -0.5)
        model_service.hold(slow)

        first = asyncio.create_task(ctl.set_t(-0.5))
        await asyncio.sleep(0)
        assert ctl.pending == frozenset({"t"})
        assert await ctl.set_t(-0.3) is True

        assert await first is False
        assert ctl.pending == frozenset()
        assert session.options.t == -0.3
        assert session.domain.q2_range == (0.05, 1.5)

    asyncio.run(scenario())


def test_rapid_model_changes_show_only_the_latest_domain(model_service) -> None:
    async def scenario():
        ctl, session = _controller(model_service, cancel_superseded=False)
        await ctl.initialize()  # A: BKM / GPD_E
        late_b = ("model", Model.UVA, Gpd.E)
        model_service.hold(late_b)

        b = asyncio.create_task(ctl.set_model("UVA Model"))
        await asyncio.sleep(0)
        assert await ctl.set_model("BKM Model") is True  # C
        model_service.release(late_b)
        assert await b is False

        assert session.options.model is Model.BKM
        assert session.domain.xbj_choices == DEFAULT_XBJ_CHOICES
        assert session.domain.t_choices == DEFAULT_T_CHOICES

    asyncio.run(scenario())


def test_model_then_gpd_switch_keeps_the_last_pair(model_service) -> None:
    async def scenario():
        ctl, session = _controller(model_service, cancel_superseded=False)
        await ctl.initialize()
        late = ("model", Model.BKM, Gpd.H)
        model_service.hold(late)

        b = asyncio.create_task(ctl.set_gpd(Gpd.H))
        await asyncio.sleep(0)
        assert await ctl.set_model(Model.UVA) is True
        model_service.release(late)
        assert await b is False

        assert (session.options.model, session.options.gpd) == (Model.UVA, Gpd.H)
        assert session.domain.xbj_choices == (0.1, 0.2)
        assert session.domain.t_choices == (-0.5, -1.0)

    asyncio.run(scenario())


def test_late_model_response_writes_only_fields_it_still_owns(model_service) -> None:
    async def scenario():
        ctl, session = _controller(model_service, cancel_superseded=False)
        await ctl.initialize()
        held = ("model", Model.UVA, Gpd.E)
        model_service.hold(held)

        m = asyncio.create_task(ctl.set_model(Model.UVA))
        await asyncio.sleep(0)
        assert await ctl.set_xbj(0.1) is True
        model_service.release(held)
        assert await m is True

        assert session.domain.xbj_choices == (0.001, 0.01, 0.1)
        assert session.domain.t_choices == (-0.2, -0.4, -0.6)
        assert session.domain.q2_range == (0.1, 5.0)
        assert session.options.xbj == 0.1
        assert ctl.latest_token(T_CHOICES) == ctl.latest_token(Q2_RANGE)
        assert ctl.latest_token(XBJ_CHOICES) < ctl.latest_token(T_CHOICES)

    asyncio.run(scenario())


def test_model_change_keeps_still_valid_selection(model_service) -> None:
    async def scenario():
        ctl, session = _controller(model_service, options=Options(xbj=0.01, t=-0.2))
        await ctl.initialize()

        assert await ctl.set_model(Model.UVA)
        assert (session.options.xbj, session.options.t) == (0.01, -0.2)

        assert await ctl.set_gpd("GPD_H")
        assert (session.options.xbj, session.options.t) == (0.1, -0.5)
        assert session.domain.q2_range is None

    asyncio.run(scenario())


def test_failed_resolution_keeps_previous_domain_and_sets_notice(model_service) -> None:
    async def scenario():
        ctl, session = _controller(model_service)
        await ctl.initialize()
        before = session.domain
        model_service.fail(("model", Model.UVA, Gpd.E))

        assert await ctl.set_model(Model.UVA) is False
        assert session.domain == before
        assert session.notice and "Domain unavailable" in session.notice

        assert await ctl.set_model(Model.BKM) is True
        assert session.notice is None

    asyncio.run(scenario())


def test_selection_outside_domain_is_rejected_without_a_call(model_service) -> None:
    async def scenario():
        ctl, session = _controller(model_service)
        await ctl.initialize()
        calls = len(model_service.calls)

        with pytest.raises(ValueError, match="not one of the valid xbj"):
            await ctl.set_xbj(0.5)
        with pytest.raises(ValueError, match="not one of the valid t"):
            await ctl.set_t(-7)

        assert len(model_service.calls) == calls
        assert session.options.xbj == 0.001

    asyncio.run(scenario())


def test_q2_is_range_checked_and_clamped_on_new_ranges(model_service) -> None:
    async def scenario():
        ctl, session = _controller(model_service)
        await ctl.initialize()

        assert ctl.set_q2("4").q2 == 4.0  # no range known yet
        await ctl.set_xbj(0.1)  # (0.1, 5.0)
        assert session.options.q2 == 4.0

        await ctl.set_xbj(0.01)  # (0.05, 2.0)
        assert session.options.q2 == 2.0

        assert ctl.set_q2("1/2").q2 == pytest.approx(0.5)
        with pytest.raises(ValueError, match="outside the valid range"):
            ctl.set_q2(3.0)
        assert session.options.q2 == pytest.approx(0.5)

    asyncio.run(scenario())


def test_cancel_pending_unwinds_in_flight_calls(model_service) -> None:
    async def scenario():
        ctl, session = _controller(model_service)
        held = ("model", Model.BKM, Gpd.E)
        model_service.hold(held)

        task = asyncio.create_task(ctl.initialize())
        await asyncio.sleep(0)
        await ctl.cancel_pending()

        assert await task is False
        assert ctl.pending == frozenset()
        assert session.domain.q2_range is None

    asyncio.run(scenario())
