from datetime import datetime
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from sqlalchemy.orm.session import Session

from transitpass.src import catalogue, exceptions, getters, ticket_ledger
from transitpass.src.constants import MAX_IDENTIFIER_LENGTH, MAX_TICKET_CODE_LENGTH
from transitpass.src.db import Ticket, sessionMaker
from transitpass.src.enums import TicketState
from transitpass.src.functions import makeExceptionResponses
from transitpass.src.loggers import logEvent
from transitpass.src.urls import URL_TICKET
from transitpass.src.wallet import WalletGateway

route_public = APIRouter()


## Output Schema
class AppliedRuleSchema(BaseModel):
    rule_id: Optional[int]
    rule_name: str
    adjustment_type: str
    surcharge: float
    time_range: str


class TicketSchema(BaseModel):
    id: int
    transaction_id: str
    qr_ticket_code: str
    user_id: str
    route_id: str
    intended_station_id: str
    intended_station_name: Optional[str]
    actual_dropoff_station_id: Optional[str]
    actual_dropoff_station_name: Optional[str]
    base_fare: float
    surcharge: float
    total_fare: float
    currency: str
    payment_status: str
    state: TicketState
    boarding_confirmed: bool
    boarding_time: Optional[datetime]
    dropoff_confirmed: bool
    dropoff_time: Optional[datetime]
    verifying_conductor_id: Optional[str]
    applied_rules: List[Dict[str, Any]]
    created_on: datetime


class IssueForm(BaseModel):
    user_id: str = Field(Body(min_length=1, max_length=MAX_IDENTIFIER_LENGTH))
    route_id: str = Field(Body(min_length=1, max_length=MAX_IDENTIFIER_LENGTH))
    station_id: str = Field(Body(min_length=1, max_length=MAX_IDENTIFIER_LENGTH))


class QueryParams(BaseModel):
    qr_code: str | None = Field(Query(default=None, max_length=MAX_TICKET_CODE_LENGTH))
    transaction_id: str | None = Field(
        Query(default=None, max_length=MAX_IDENTIFIER_LENGTH)
    )


## Function
def ticketViews(session: Session, tickets: List[Ticket]) -> List[Dict[str, Any]]:
    """Render tickets for the clients, with the names of their stations."""
    stationIds = set()
    for ticket in tickets:
        stationIds.add(ticket.intended_station_id)
        if ticket.actual_dropoff_station_id is not None:
            stationIds.add(ticket.actual_dropoff_station_id)
    stations = catalogue.getStations(session, list(stationIds))

    def stationName(stationId):
        station = stations.get(stationId)
        return station.name if station is not None else None

    views = []
    for ticket in tickets:
        views.append(
            {
                "id": ticket.id,
                "transaction_id": ticket.transaction_id,
                "qr_ticket_code": ticket.qr_ticket_code,
                "user_id": ticket.user_id,
                "route_id": ticket.route_id,
                "intended_station_id": ticket.intended_station_id,
                "intended_station_name": stationName(ticket.intended_station_id),
                "actual_dropoff_station_id": ticket.actual_dropoff_station_id,
                "actual_dropoff_station_name": stationName(
                    ticket.actual_dropoff_station_id
                ),
                "base_fare": float(ticket.base_fare),
                "surcharge": float(ticket.surcharge),
                "total_fare": float(ticket.total_fare),
                "currency": ticket.currency,
                "payment_status": ticket.payment_status,
                "state": ticket.state,
                "boarding_confirmed": ticket.boarding_confirmed,
                "boarding_time": ticket.boarding_time,
                "dropoff_confirmed": ticket.dropoff_confirmed,
                "dropoff_time": ticket.dropoff_time,
                "verifying_conductor_id": ticket.verifying_conductor_id,
                "applied_rules": ticket.applied_rules or [],
                "created_on": ticket.created_on,
            }
        )
    return views


def ticketView(session: Session, ticket: Ticket) -> Dict[str, Any]:
    return ticketViews(session, [ticket])[0]


## API endpoints [Public]
@route_public.post(
    URL_TICKET,
    tags=["Ticket"],
    response_model=TicketSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidInput,
            exceptions.RouteNotFound,
            exceptions.StationNotOnRoute,
            exceptions.InsufficientFunds,
            exceptions.WalletUnavailable,
        ]
    ),
    description="""
    Buys a ticket from the start of the route to the given station.
    The fare is priced with the surcharge rules active right now and debited from the rider wallet.
    The ticket is created as PAID and ISSUED, ready to be scanned by a conductor.
    If the ticket can not be stored after the debit, the amount is credited back.
    """,
)
async def create_ticket(
    fParam: IssueForm = Depends(),
    wallet: WalletGateway = Depends(getters.walletGateway),
    now: datetime = Depends(getters.currentTime),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        route = catalogue.getRoute(session, fParam.route_id)
        station = catalogue.getStation(session, route.id, fParam.station_id)
        quote = catalogue.quoteFare(session, route, station, now)

        transactionId = wallet.debit(fParam.user_id, quote.total_fare, route.currency)
        try:
            ticket = ticket_ledger.issueTicket(
                session,
                userId=fParam.user_id,
                routeId=route.id,
                stationId=station.id,
                baseFare=quote.subtotal,
                surcharge=quote.total_surcharge,
                currency=route.currency,
                appliedRules=jsonable_encoder(quote.applied_rules),
                now=now,
                transactionId=transactionId,
            )
            session.commit()
        except Exception:
            session.rollback()
            wallet.credit(fParam.user_id, quote.total_fare, route.currency)
            raise

        ticketData = ticketView(session, ticket)
        logEvent(None, request_info, jsonable_encoder(ticketData))
        return ticketData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_public.get(
    URL_TICKET,
    tags=["Ticket"],
    response_model=TicketSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidInput, exceptions.TicketNotFound]
    ),
    description="""
    Fetches a ticket by its QR code or by the wallet transaction that paid for it.
    Exactly one of qr_code or transaction_id is required.
    """,
)
async def fetch_ticket(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        if (qParam.qr_code is None) == (qParam.transaction_id is None):
            raise exceptions.InvalidInput("Provide either qr_code or transaction_id")

        if qParam.qr_code is not None:
            ticket = ticket_ledger.findByCode(session, qParam.qr_code)
        else:
            ticket = ticket_ledger.findByTransaction(session, qParam.transaction_id)
        return ticketView(session, ticket)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
