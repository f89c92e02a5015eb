"""
Boarding verification state machine.

    ISSUED --CONFIRM_BOARDING--> BOARDED --CONFIRM_DROPOFF--> DROPPED_OFF

CHANGE_DROPOFF keeps the state and moves the drop-off station while the
drop-off is not confirmed. SCAN never changes anything.

Every action needs an active conductor session on the ticket's route. A
violated precondition raises a typed exception; nothing is retried.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple
from sqlalchemy.orm.session import Session

from transitpass.src import catalogue, exceptions, session_registry, ticket_ledger
from transitpass.src.constants import ADDITIONAL_FARE_POLICY
from transitpass.src.db import Station, Ticket
from transitpass.src.enums import FarePolicy, TicketAction


# ---------------------------------------------------------------------------
# Additional fare policies
# ---------------------------------------------------------------------------
class AdditionalFarePolicy(ABC):
    """Decides how much a drop-off change adds to the ticket's fare."""

    @abstractmethod
    def additionalFare(
        self,
        session: Session,
        ticket: Ticket,
        newStation: Station,
        requestedFare: Decimal | None,
        now: datetime,
    ) -> Decimal:
        pass


class CallerSuppliedFare(AdditionalFarePolicy):
    """Trusts the amount sent by the conductor client; absent means free."""

    def additionalFare(self, session, ticket, newStation, requestedFare, now):
        if requestedFare is None:
            return Decimal(0)
        if requestedFare < 0:
            raise exceptions.InvalidFareInput("additional fare")
        return requestedFare


class RecomputedFare(AdditionalFarePolicy):
    """
    Prices the new destination with the route's current rules and charges
    the difference to what was already paid. Shorter trips are not refunded.
    """

    def additionalFare(self, session, ticket, newStation, requestedFare, now):
        route = catalogue.getRoute(session, ticket.route_id)
        quote = catalogue.quoteFare(session, route, newStation, now)
        return max(quote.total_fare - Decimal(ticket.total_fare), Decimal(0))


def farePolicy(name: str = ADDITIONAL_FARE_POLICY) -> AdditionalFarePolicy:
    if FarePolicy(name) == FarePolicy.RECOMPUTE:
        return RecomputedFare()
    return CallerSuppliedFare()


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------
class Outcome(NamedTuple):
    action: TicketAction
    ticket: Ticket
    message: str | None = None
    additional_fare: Decimal | None = None


def verifyTicket(
    session: Session,
    conductorId: str,
    code: str,
    action: TicketAction,
    now: datetime,
    newStationId: str | None = None,
    additionalFare: Decimal | None = None,
    policy: AdditionalFarePolicy | None = None,
) -> Outcome:
    """
    Apply one conductor action to a ticket.

    Raises:
        exceptions.NoActiveSession: The conductor is not on duty.
        exceptions.TicketNotFound: Unknown QR code.
        exceptions.WrongRoute: The ticket belongs to another route.
        exceptions.AlreadyBoarded, exceptions.NotYetBoarded,
        exceptions.AlreadyDroppedOff, exceptions.DropoffAlreadyConfirmed,
        exceptions.StationNotOnRoute, exceptions.InvalidInput
    """
    conductorSession = session_registry.getActiveSession(session, conductorId)
    ticket = ticket_ledger.findByCode(session, code)
    if ticket.route_id != conductorSession.route_id:
        raise exceptions.WrongRoute()

    if action == TicketAction.SCAN:
        return Outcome(action, ticket)

    if action == TicketAction.CONFIRM_BOARDING:
        ticket = ticket_ledger.confirmBoarding(session, code, conductorId, now)
        return Outcome(action, ticket, "Boarding confirmed successfully")

    if action == TicketAction.CONFIRM_DROPOFF:
        if newStationId is not None:
            catalogue.getStation(session, ticket.route_id, newStationId)
        ticket = ticket_ledger.confirmDropoff(session, code, newStationId, now)
        return Outcome(action, ticket, "Drop-off confirmed successfully")

    if action == TicketAction.CHANGE_DROPOFF:
        if ticket.dropoff_confirmed:
            raise exceptions.DropoffAlreadyConfirmed()
        if not newStationId:
            raise exceptions.InvalidInput("New station ID required for drop-off change")
        newStation = catalogue.getStation(session, ticket.route_id, newStationId)
        policy = policy or farePolicy()
        extraFare = policy.additionalFare(session, ticket, newStation, additionalFare, now)
        ticket = ticket_ledger.changeDropoff(session, code, newStation.id, extraFare, now)
        return Outcome(action, ticket, "Drop-off location updated successfully", extraFare)

    raise exceptions.InvalidInput("Invalid action")
