from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from conftest import NOW, issue
from transitpass.src import exceptions, ticket_ledger
from transitpass.src.db import sessionMaker
from transitpass.src.enums import PaymentStatus, TicketState


def test_issued_ticket_starts_unboarded(seeded):
    code = issue()
    with sessionMaker() as session:
        ticket = ticket_ledger.findByCode(session, code)
        assert ticket.state == TicketState.ISSUED
        assert ticket.payment_status == "PAID"
        assert ticket.total_fare == Decimal("1.45")
        assert ticket.actual_dropoff_station_id is None


def test_unknown_code_is_not_found(seeded):
    with sessionMaker() as session:
        with pytest.raises(exceptions.TicketNotFound):
            ticket_ledger.findByCode(session, "TICKET_DOES_NOT_EXIST")
        with pytest.raises(exceptions.TicketNotFound):
            ticket_ledger.confirmBoarding(session, "TICKET_DOES_NOT_EXIST", "COND_001", NOW)


def test_confirm_boarding_sets_time_and_conductor(seeded):
    code = issue()
    with sessionMaker() as session:
        ticket = ticket_ledger.confirmBoarding(session, code, "COND_001", NOW)
        assert ticket.state == TicketState.BOARDED
        assert ticket.boarding_time is not None
        assert ticket.verifying_conductor_id == "COND_001"


def test_double_boarding_is_rejected(seeded):
    code = issue()
    with sessionMaker() as session:
        ticket_ledger.confirmBoarding(session, code, "COND_001", NOW)
        with pytest.raises(exceptions.AlreadyBoarded):
            ticket_ledger.confirmBoarding(session, code, "COND_002", NOW)
        ticket = ticket_ledger.findByCode(session, code)
        assert ticket.verifying_conductor_id == "COND_001"


def test_unpaid_ticket_is_not_boarded(seeded):
    code = issue(paymentStatus=PaymentStatus.UNPAID)
    with sessionMaker() as session:
        with pytest.raises(exceptions.TicketUnpaid):
            ticket_ledger.confirmBoarding(session, code, "COND_001", NOW)
        ticket = ticket_ledger.findByCode(session, code)
        assert ticket.boarding_confirmed is False
        assert ticket.verifying_conductor_id is None


def test_dropoff_before_boarding_is_rejected(seeded):
    code = issue()
    with sessionMaker() as session:
        with pytest.raises(exceptions.NotYetBoarded):
            ticket_ledger.confirmDropoff(session, code, None, NOW)
        ticket = ticket_ledger.findByCode(session, code)
        assert ticket.dropoff_confirmed is False
        assert ticket.dropoff_time is None


def test_dropoff_defaults_to_intended_station(seeded):
    code = issue(stationId="AVENUE-S01")
    with sessionMaker() as session:
        ticket_ledger.confirmBoarding(session, code, "COND_001", NOW)
        ticket = ticket_ledger.confirmDropoff(session, code, None, NOW)
        assert ticket.state == TicketState.DROPPED_OFF
        assert ticket.actual_dropoff_station_id == "AVENUE-S01"
        assert ticket.dropoff_time is not None


def test_dropoff_keeps_changed_station(seeded):
    code = issue(stationId="CBD-S03")
    with sessionMaker() as session:
        ticket_ledger.confirmBoarding(session, code, "COND_001", NOW)
        ticket_ledger.changeDropoff(session, code, "AVENUE-S02", Decimal("0.30"), NOW)
        ticket = ticket_ledger.confirmDropoff(session, code, None, NOW)
        assert ticket.actual_dropoff_station_id == "AVENUE-S02"


def test_second_dropoff_is_rejected(seeded):
    code = issue()
    with sessionMaker() as session:
        ticket_ledger.confirmBoarding(session, code, "COND_001", NOW)
        ticket_ledger.confirmDropoff(session, code, None, NOW)
        with pytest.raises(exceptions.AlreadyDroppedOff):
            ticket_ledger.confirmDropoff(session, code, "CBD-S02", NOW)
        ticket = ticket_ledger.findByCode(session, code)
        assert ticket.actual_dropoff_station_id == "AVENUE-S01"


def test_change_dropoff_adds_to_total(seeded):
    code = issue(stationId="CBD-S03", totalFare="1.30")
    with sessionMaker() as session:
        ticket = ticket_ledger.changeDropoff(session, code, "AVENUE-S02", Decimal("0.30"), NOW)
        assert ticket.actual_dropoff_station_id == "AVENUE-S02"
        assert ticket.total_fare == Decimal("1.60")
        assert ticket.intended_station_id == "CBD-S03"


def test_change_dropoff_after_dropoff_is_rejected(seeded):
    code = issue(totalFare="1.45")
    with sessionMaker() as session:
        ticket_ledger.confirmBoarding(session, code, "COND_001", NOW)
        ticket_ledger.confirmDropoff(session, code, None, NOW)
        with pytest.raises(exceptions.DropoffAlreadyConfirmed):
            ticket_ledger.changeDropoff(session, code, "AVENUE-S02", Decimal("0.15"), NOW)
        ticket = ticket_ledger.findByCode(session, code)
        assert ticket.total_fare == Decimal("1.45")
        assert ticket.actual_dropoff_station_id == "AVENUE-S01"


def test_negative_additional_fare_is_rejected(seeded):
    code = issue(totalFare="1.45")
    with sessionMaker() as session:
        with pytest.raises(exceptions.InvalidFareInput):
            ticket_ledger.changeDropoff(session, code, "CBD-S02", Decimal("-0.50"), NOW)
        assert ticket_ledger.findByCode(session, code).total_fare == Decimal("1.45")


def test_concurrent_boarding_has_exactly_one_winner(seeded):
    code = issue()
    conductors = [f"COND_{i:03d}" for i in range(8)]

    def board(conductorId):
        with sessionMaker() as session:
            try:
                ticket_ledger.confirmBoarding(session, code, conductorId, NOW)
                return "boarded"
            except exceptions.AlreadyBoarded:
                return "rejected"

    with ThreadPoolExecutor(max_workers=len(conductors)) as executor:
        results = list(executor.map(board, conductors))

    assert results.count("boarded") == 1
    assert results.count("rejected") == len(conductors) - 1

    with sessionMaker() as session:
        ticket = ticket_ledger.findByCode(session, code)
        assert ticket.boarding_confirmed is True
        assert ticket.verifying_conductor_id == conductors[results.index("boarded")]
