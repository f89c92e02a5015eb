"""
Ticket ledger: the authoritative record of a ticket's lifecycle and fare.

Every mutation is a single conditional UPDATE whose WHERE clause carries the
precondition of the transition. Two scans of the same code racing each other
can therefore never both succeed; the loser sees zero affected rows and the
ticket is read back only to tell the caller why.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List
from sqlalchemy import func, update
from sqlalchemy.orm.session import Session

from transitpass.src import exceptions
from transitpass.src.db import Ticket
from transitpass.src.enums import PaymentStatus


def findByCode(session: Session, code: str) -> Ticket:
    """
    Fetch a ticket by its QR code.

    Raises:
        exceptions.TicketNotFound: If no ticket carries the code.
    """
    ticket = session.query(Ticket).filter(Ticket.qr_ticket_code == code).first()
    if ticket is None:
        raise exceptions.TicketNotFound()
    return ticket


def findByTransaction(session: Session, transactionId: str) -> Ticket:
    ticket = (
        session.query(Ticket).filter(Ticket.transaction_id == transactionId).first()
    )
    if ticket is None:
        raise exceptions.TicketNotFound()
    return ticket


def _reload(session: Session, code: str) -> Ticket:
    session.expire_all()
    return findByCode(session, code)


def issueTicket(
    session: Session,
    userId: str,
    routeId: str,
    stationId: str,
    baseFare: Decimal,
    surcharge: Decimal,
    currency: str,
    appliedRules: List[Dict[str, Any]],
    now: datetime,
    transactionId: str | None = None,
    paymentStatus: PaymentStatus = PaymentStatus.PAID,
) -> Ticket:
    """
    Record a newly purchased ticket in the ISSUED state.

    The caller owns the transaction; the ticket is flushed, not committed,
    so that the wallet debit and the ticket can be committed together.
    """
    ticket = Ticket(
        user_id=userId,
        route_id=routeId,
        intended_station_id=stationId,
        base_fare=baseFare,
        surcharge=surcharge,
        total_fare=baseFare + surcharge,
        currency=currency,
        payment_status=paymentStatus.value,
        applied_rules=appliedRules,
        created_on=now,
    )
    if transactionId is not None:
        ticket.transaction_id = transactionId
    session.add(ticket)
    session.flush()
    return ticket


def confirmBoarding(
    session: Session, code: str, conductorId: str, now: datetime
) -> Ticket:
    """
    ISSUED -> BOARDED.

    Sets boarding_confirmed, boarding_time and the verifying conductor in one
    statement, only where the ticket is paid and not boarded yet.

    Raises:
        exceptions.TicketNotFound, exceptions.AlreadyBoarded,
        exceptions.TicketUnpaid
    """
    result = session.execute(
        update(Ticket)
        .where(Ticket.qr_ticket_code == code)
        .where(Ticket.payment_status == PaymentStatus.PAID.value)
        .where(Ticket.boarding_confirmed.is_(False))
        .values(
            boarding_confirmed=True,
            boarding_time=now,
            verifying_conductor_id=conductorId,
            updated_on=now,
        )
        .execution_options(synchronize_session=False)
    )
    session.commit()
    ticket = _reload(session, code)
    if result.rowcount == 0:
        if ticket.boarding_confirmed:
            raise exceptions.AlreadyBoarded()
        raise exceptions.TicketUnpaid()
    return ticket


def confirmDropoff(
    session: Session, code: str, stationId: str | None, now: datetime
) -> Ticket:
    """
    BOARDED -> DROPPED_OFF.

    Without a station the drop-off lands on the changed drop-off station,
    or on the station chosen at purchase.

    Raises:
        exceptions.TicketNotFound, exceptions.NotYetBoarded,
        exceptions.AlreadyDroppedOff
    """
    dropoffStation = func.coalesce(
        stationId, Ticket.actual_dropoff_station_id, Ticket.intended_station_id
    )
    result = session.execute(
        update(Ticket)
        .where(Ticket.qr_ticket_code == code)
        .where(Ticket.boarding_confirmed.is_(True))
        .where(Ticket.dropoff_confirmed.is_(False))
        .values(
            actual_dropoff_station_id=dropoffStation,
            dropoff_confirmed=True,
            dropoff_time=now,
            updated_on=now,
        )
        .execution_options(synchronize_session=False)
    )
    session.commit()
    ticket = _reload(session, code)
    if result.rowcount == 0:
        if not ticket.boarding_confirmed:
            raise exceptions.NotYetBoarded()
        raise exceptions.AlreadyDroppedOff()
    return ticket


def changeDropoff(
    session: Session,
    code: str,
    newStationId: str,
    additionalFare: Decimal,
    now: datetime | None = None,
) -> Ticket:
    """
    Move the drop-off station and add the additional fare to the total.

    The fare only ever grows along this path; there is no refund.

    Raises:
        exceptions.TicketNotFound, exceptions.DropoffAlreadyConfirmed,
        exceptions.InvalidFareInput
    """
    if additionalFare is None or additionalFare < 0:
        raise exceptions.InvalidFareInput("additional fare")
    values = {
        "actual_dropoff_station_id": newStationId,
        "total_fare": Ticket.total_fare + additionalFare,
    }
    if now is not None:
        values["updated_on"] = now
    result = session.execute(
        update(Ticket)
        .where(Ticket.qr_ticket_code == code)
        .where(Ticket.dropoff_confirmed.is_(False))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    ticket = _reload(session, code)
    if result.rowcount == 0:
        raise exceptions.DropoffAlreadyConfirmed()
    return ticket
