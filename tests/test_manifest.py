from datetime import date, datetime, timedelta, timezone

from conftest import AVENUE, BORROWDALE, NOW, issue
from transitpass.src import ticket_ledger
from transitpass.src.db import Ticket, sessionMaker
from transitpass.src.manifest import buildManifest, dayBounds, serviceDate

TODAY = date(2026, 10, 19)


def _board(code, at):
    with sessionMaker() as session:
        ticket_ledger.confirmBoarding(session, code, "COND_001", at)


def _manifestCodes(routeId=AVENUE, asOfDate=TODAY):
    with sessionMaker() as session:
        return [ticket.qr_ticket_code for ticket in buildManifest(session, routeId, asOfDate)]


def test_manifest_lists_boarded_passengers_in_boarding_order(seeded):
    late = issue(userId="user_late")
    early = issue(userId="user_early")
    _board(late, NOW + timedelta(minutes=20))
    _board(early, NOW + timedelta(minutes=5))
    assert _manifestCodes() == [early, late]


def test_manifest_excludes_unboarded_and_dropped_off(seeded):
    aboard = issue()
    notBoarded = issue()
    droppedOff = issue()
    _board(aboard, NOW)
    _board(droppedOff, NOW)
    with sessionMaker() as session:
        ticket_ledger.confirmDropoff(session, droppedOff, None, NOW + timedelta(minutes=30))

    codes = _manifestCodes()
    assert codes == [aboard]
    assert notBoarded not in codes
    assert droppedOff not in codes


def test_manifest_excludes_prior_day_tickets(seeded):
    yesterday = issue(createdOn=NOW - timedelta(days=1))
    today = issue()
    _board(yesterday, NOW)
    _board(today, NOW)
    assert _manifestCodes() == [today]
    assert _manifestCodes(asOfDate=TODAY - timedelta(days=1)) == [yesterday]


def test_manifest_excludes_unpaid_and_other_routes(seeded):
    unpaid = issue()
    otherRoute = issue(routeId=BORROWDALE, stationId="BORROWDALE-B01")
    _board(unpaid, NOW)
    _board(otherRoute, NOW)
    with sessionMaker() as session:
        session.query(Ticket).filter(Ticket.qr_ticket_code == unpaid).update(
            {Ticket.payment_status: "UNPAID"}
        )
        session.commit()

    assert _manifestCodes() == []
    assert _manifestCodes(routeId=BORROWDALE) == [otherRoute]


def test_manifest_does_not_mutate_tickets(seeded):
    code = issue()
    _board(code, NOW)
    with sessionMaker() as session:
        before = ticket_ledger.findByCode(session, code).updated_on
        buildManifest(session, AVENUE, TODAY)
        assert not session.dirty
        session.expire_all()
        assert ticket_ledger.findByCode(session, code).updated_on == before


def test_service_day_follows_service_timezone():
    # 23:30 UTC on the 18th is 01:30 on the 19th in Harare
    lateNight = datetime(2026, 10, 18, 23, 30, tzinfo=timezone.utc)
    assert serviceDate(lateNight) == TODAY

    start, end = dayBounds(TODAY)
    assert start == datetime(2026, 10, 18, 22, 0, tzinfo=timezone.utc)
    assert end - start == timedelta(days=1)
