from decimal import Decimal

import pytest

from conftest import AVENUE, BORROWDALE, MORNING_PEAK, NOW, issue
from transitpass.src import exceptions, session_registry, ticket_ledger
from transitpass.src.boarding_verifier import (
    CallerSuppliedFare,
    RecomputedFare,
    farePolicy,
    verifyTicket,
)
from transitpass.src.credentials import DatabaseCredentialVerifier
from transitpass.src.db import sessionMaker
from transitpass.src.enums import TicketAction, TicketState


@pytest.fixture()
def onDuty(seeded):
    """COND_001 on the Avondale route."""
    with sessionMaker() as session:
        verifier = DatabaseCredentialVerifier(session)
        session_registry.login(session, verifier, "COND_001", "1234", NOW)
    return "COND_001"


def _verify(conductorId, code, action, **kw):
    with sessionMaker() as session:
        return verifyTicket(session, conductorId, code, action, kw.pop("now", NOW), **kw)


def _ticket(code):
    with sessionMaker() as session:
        return ticket_ledger.findByCode(session, code)


def test_scan_is_read_only(onDuty):
    code = issue()
    outcome = _verify(onDuty, code, TicketAction.SCAN)
    assert outcome.ticket.qr_ticket_code == code
    assert outcome.message is None
    assert _ticket(code).state == TicketState.ISSUED


def test_full_journey(onDuty):
    code = issue()
    boarded = _verify(onDuty, code, TicketAction.CONFIRM_BOARDING)
    assert boarded.ticket.state == TicketState.BOARDED
    assert boarded.message == "Boarding confirmed successfully"

    dropped = _verify(onDuty, code, TicketAction.CONFIRM_DROPOFF)
    assert dropped.ticket.state == TicketState.DROPPED_OFF
    assert dropped.ticket.actual_dropoff_station_id == "AVENUE-S01"


def test_action_without_session_fails(seeded):
    code = issue()
    with pytest.raises(exceptions.NoActiveSession):
        _verify("COND_001", code, TicketAction.CONFIRM_BOARDING)
    assert _ticket(code).state == TicketState.ISSUED


def test_unknown_ticket(onDuty):
    with pytest.raises(exceptions.TicketNotFound):
        _verify(onDuty, "TICKET_UNKNOWN", TicketAction.SCAN)


@pytest.mark.parametrize("action", list(TicketAction))
def test_ticket_of_another_route_is_rejected_without_mutation(onDuty, action):
    code = issue(routeId=BORROWDALE, stationId="BORROWDALE-B01", totalFare="1.80")
    with pytest.raises(exceptions.WrongRoute):
        _verify(
            onDuty,
            code,
            action,
            newStationId="BORROWDALE-B01",
            additionalFare=Decimal("0.50"),
        )
    ticket = _ticket(code)
    assert ticket.state == TicketState.ISSUED
    assert ticket.total_fare == Decimal("1.80")
    assert ticket.actual_dropoff_station_id is None


def test_confirm_dropoff_rejects_station_of_another_route(onDuty):
    code = issue()
    _verify(onDuty, code, TicketAction.CONFIRM_BOARDING)
    with pytest.raises(exceptions.StationNotOnRoute):
        _verify(onDuty, code, TicketAction.CONFIRM_DROPOFF, newStationId="CBD-B02")
    assert _ticket(code).state == TicketState.BOARDED


def test_confirm_dropoff_at_override_station(onDuty):
    code = issue()
    _verify(onDuty, code, TicketAction.CONFIRM_BOARDING)
    outcome = _verify(onDuty, code, TicketAction.CONFIRM_DROPOFF, newStationId="CBD-S03")
    assert outcome.ticket.actual_dropoff_station_id == "CBD-S03"


def test_change_dropoff_requires_new_station(onDuty):
    code = issue()
    with pytest.raises(exceptions.InvalidInput):
        _verify(onDuty, code, TicketAction.CHANGE_DROPOFF)


def test_change_dropoff_to_station_off_route_leaves_ticket_unchanged(onDuty):
    code = issue(totalFare="1.45")
    with pytest.raises(exceptions.StationNotOnRoute):
        _verify(
            onDuty,
            code,
            TicketAction.CHANGE_DROPOFF,
            newStationId="BORROWDALE-B01",
            additionalFare=Decimal("0.50"),
        )
    ticket = _ticket(code)
    assert ticket.actual_dropoff_station_id is None
    assert ticket.total_fare == Decimal("1.45")


def test_change_dropoff_with_caller_supplied_fare(onDuty):
    code = issue(stationId="CBD-S03", totalFare="1.30")
    outcome = _verify(
        onDuty,
        code,
        TicketAction.CHANGE_DROPOFF,
        newStationId="AVENUE-S02",
        additionalFare=Decimal("0.30"),
        policy=CallerSuppliedFare(),
    )
    assert outcome.additional_fare == Decimal("0.30")
    assert outcome.ticket.total_fare == Decimal("1.60")
    assert outcome.ticket.actual_dropoff_station_id == "AVENUE-S02"
    assert outcome.ticket.state == TicketState.ISSUED


def test_change_dropoff_without_fare_is_free_for_caller_policy(onDuty):
    code = issue(stationId="CBD-S03", totalFare="1.30")
    outcome = _verify(
        onDuty, code, TicketAction.CHANGE_DROPOFF, newStationId="CBD-S02",
        policy=CallerSuppliedFare(),
    )
    assert outcome.additional_fare == Decimal(0)
    assert outcome.ticket.total_fare == Decimal("1.30")


def test_change_dropoff_with_recomputed_fare(onDuty):
    # CBD-S03 at the morning peak: 1.00 + 2 * 0.15 + 0.50 = 1.80
    code = issue(stationId="CBD-S03", totalFare="1.80")
    outcome = _verify(
        onDuty,
        code,
        TicketAction.CHANGE_DROPOFF,
        now=MORNING_PEAK,
        newStationId="AVENUE-S02",
        additionalFare=Decimal("5.00"),
        policy=RecomputedFare(),
    )
    # AVENUE-S02 at the morning peak: 1.00 + 4 * 0.15 + 0.50 = 2.10
    assert outcome.additional_fare == Decimal("0.30")
    assert outcome.ticket.total_fare == Decimal("2.10")


def test_recomputed_fare_never_refunds(onDuty):
    code = issue(stationId="AVENUE-S02", totalFare="2.10")
    outcome = _verify(
        onDuty,
        code,
        TicketAction.CHANGE_DROPOFF,
        newStationId="CBD-S02",
        policy=RecomputedFare(),
    )
    assert outcome.additional_fare == Decimal(0)
    assert outcome.ticket.total_fare == Decimal("2.10")


def test_change_dropoff_after_dropoff_is_rejected(onDuty):
    code = issue(totalFare="1.45")
    _verify(onDuty, code, TicketAction.CONFIRM_BOARDING)
    _verify(onDuty, code, TicketAction.CONFIRM_DROPOFF)
    with pytest.raises(exceptions.DropoffAlreadyConfirmed):
        _verify(
            onDuty,
            code,
            TicketAction.CHANGE_DROPOFF,
            newStationId="AVENUE-S02",
            additionalFare=Decimal("0.30"),
        )
    assert _ticket(code).total_fare == Decimal("1.45")


def test_fare_policy_factory():
    assert isinstance(farePolicy("CALLER"), CallerSuppliedFare)
    assert isinstance(farePolicy("RECOMPUTE"), RecomputedFare)
    with pytest.raises(ValueError):
        farePolicy("GUESS")


def test_conductor_on_other_route_sees_wrong_route(seeded):
    with sessionMaker() as session:
        verifier = DatabaseCredentialVerifier(session)
        session_registry.login(session, verifier, "COND_002", "5678", NOW)
    code = issue(routeId=AVENUE)
    with pytest.raises(exceptions.WrongRoute):
        _verify("COND_002", code, TicketAction.CONFIRM_BOARDING)
