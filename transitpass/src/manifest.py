"""
Live passenger manifest of a route.

The manifest is a read model over the ticket ledger: paid tickets that
boarded and have not dropped off yet, limited to one service day.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import List, Tuple
from sqlalchemy.orm.session import Session

from transitpass.src.constants import TMZ_SERVICE
from transitpass.src.db import Ticket
from transitpass.src.enums import PaymentStatus


def dayBounds(asOfDate: date) -> Tuple[datetime, datetime]:
    """
    UTC bounds `[start, end)` of a service day.

    The service day follows the service timezone, not UTC, so a ticket
    bought shortly after local midnight belongs to the new day.
    """
    start = datetime.combine(asOfDate, time.min, tzinfo=TMZ_SERVICE)
    end = datetime.combine(asOfDate + timedelta(days=1), time.min, tzinfo=TMZ_SERVICE)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def serviceDate(at: datetime) -> date:
    """Service day a timestamp falls in."""
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at.astimezone(TMZ_SERVICE).date()


def buildManifest(session: Session, routeId: str, asOfDate: date) -> List[Ticket]:
    """
    Passengers currently aboard a route, in boarding order.

    Args:
        session (Session): Active SQLAlchemy session. Nothing is written.
        routeId (str): Route of the conductor's session.
        asOfDate (date): Service day; tickets created on other days are left out.

    Returns:
        List[Ticket]: Paid, boarded, not dropped off tickets of the day,
        ascending by boarding time.
    """
    start, end = dayBounds(asOfDate)
    return (
        session.query(Ticket)
        .filter(Ticket.route_id == routeId)
        .filter(Ticket.payment_status == PaymentStatus.PAID.value)
        .filter(Ticket.boarding_confirmed.is_(True))
        .filter(Ticket.dropoff_confirmed.is_(False))
        .filter(Ticket.created_on >= start)
        .filter(Ticket.created_on < end)
        .order_by(Ticket.boarding_time.asc(), Ticket.id.asc())
        .all()
    )
