from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from fastapi import APIRouter, Body, Depends, Query
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from sqlalchemy.orm.session import Session

from transitpass.api.ticket import TicketSchema, ticketView, ticketViews
from transitpass.src import boarding_verifier, exceptions, getters, session_registry
from transitpass.src.boarding_verifier import AdditionalFarePolicy
from transitpass.src.constants import (
    MAX_IDENTIFIER_LENGTH,
    MAX_LOCATION_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_PIN_LENGTH,
    MAX_TICKET_CODE_LENGTH,
)
from transitpass.src.credentials import CredentialVerifier
from transitpass.src.db import ConductorSession, sessionMaker
from transitpass.src.enums import QueryAction, RequestAction, SessionAction, TicketAction
from transitpass.src.functions import enumStr, makeExceptionResponses
from transitpass.src.loggers import logEvent
from transitpass.src.manifest import buildManifest, serviceDate
from transitpass.src.redis import acquireLock, releaseLock
from transitpass.src.riders import Rider, RiderDirectory
from transitpass.src.urls import URL_VERIFY

route_conductor = APIRouter()


## Output Schema
class SessionSchema(BaseModel):
    session_id: str
    conductor_id: str
    conductor_name: str
    route_id: str
    bus_id: Optional[str]
    login_time: datetime


class ActiveSessionSchema(SessionSchema):
    current_location: Optional[str]
    last_ping_time: Optional[datetime]


class LoginResponse(BaseModel):
    success: bool
    message: str
    session: SessionSchema


class VerifyResponse(BaseModel):
    success: bool
    action: TicketAction
    message: Optional[str] = None
    additional_fare: Optional[float] = None
    ticket: TicketSchema
    rider: Optional[Rider] = None


class SessionResponse(BaseModel):
    success: bool
    session: ActiveSessionSchema


class ManifestResponse(BaseModel):
    route_id: str
    passenger_count: int
    passengers: List[TicketSchema]


class MessageResponse(BaseModel):
    success: bool
    message: str


## Input Forms
class LoginForm(BaseModel):
    conductor_id: str = Field(min_length=1, max_length=MAX_IDENTIFIER_LENGTH)
    pin: str = Field(min_length=1, max_length=MAX_PIN_LENGTH)
    route_id: str | None = Field(default=None, max_length=MAX_IDENTIFIER_LENGTH)
    bus_id: str | None = Field(default=None, max_length=MAX_IDENTIFIER_LENGTH)


class AdditionalData(BaseModel):
    new_station_id: str | None = Field(default=None, max_length=MAX_IDENTIFIER_LENGTH)
    additional_fare: Decimal | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)


class VerifyForm(BaseModel):
    conductor_id: str = Field(min_length=1, max_length=MAX_IDENTIFIER_LENGTH)
    qr_ticket_code: str = Field(min_length=1, max_length=MAX_TICKET_CODE_LENGTH)
    ticket_action: TicketAction
    additional_data: AdditionalData | None = None


class SessionForm(BaseModel):
    conductor_id: str = Field(Body(min_length=1, max_length=MAX_IDENTIFIER_LENGTH))
    action: SessionAction = Field(Body(description=enumStr(SessionAction)))
    location: str | None = Field(Body(default=None, max_length=MAX_LOCATION_LENGTH))


## Query Parameters
class QueryParams(BaseModel):
    conductor_id: str = Field(Query(min_length=1, max_length=MAX_IDENTIFIER_LENGTH))
    action: QueryAction = Field(
        Query(default=QueryAction.SESSION, description=enumStr(QueryAction))
    )


## Function
def sessionView(conductorSession: ConductorSession) -> Dict[str, Any]:
    return {
        "session_id": conductorSession.session_id,
        "conductor_id": conductorSession.conductor_id,
        "conductor_name": conductorSession.conductor_name,
        "route_id": conductorSession.route_id,
        "bus_id": conductorSession.bus_id,
        "login_time": conductorSession.login_time,
        "current_location": conductorSession.current_location,
        "last_ping_time": conductorSession.last_ping_time,
    }


def parseVerifyForm(body: Dict[str, Any]) -> VerifyForm:
    """
    Accept both request shapes of a ticket verification.

    The nested shape names the ticket action in `ticket_action`; older
    clients send the ticket action directly as `action`.
    """
    data = dict(body)
    action = data.pop("action", None)
    if action != RequestAction.VERIFY_TICKET.value and "ticket_action" not in data:
        data["ticket_action"] = action
    return VerifyForm.model_validate(data)


def login(
    session: Session,
    verifier: CredentialVerifier,
    body: Dict[str, Any],
    now: datetime,
    request_info,
):
    fParam = LoginForm.model_validate(body)
    sessionLock = acquireLock(ConductorSession.__tablename__, fParam.conductor_id)
    try:
        conductorSession = session_registry.login(
            session,
            verifier,
            fParam.conductor_id,
            fParam.pin,
            now,
            routeId=fParam.route_id,
            busId=fParam.bus_id,
        )
    finally:
        releaseLock(sessionLock)

    sessionData = sessionView(conductorSession)
    logEvent(
        conductorSession.conductor_id,
        request_info,
        {"action": RequestAction.LOGIN.value, **jsonable_encoder(sessionData)},
    )
    return {"success": True, "message": "Login successful", "session": sessionData}


def verify(
    session: Session,
    policy: AdditionalFarePolicy,
    riders: RiderDirectory,
    body: Dict[str, Any],
    now: datetime,
    request_info,
):
    fParam = parseVerifyForm(body)
    additionalData = fParam.additional_data or AdditionalData()
    outcome = boarding_verifier.verifyTicket(
        session,
        fParam.conductor_id,
        fParam.qr_ticket_code,
        fParam.ticket_action,
        now,
        newStationId=additionalData.new_station_id,
        additionalFare=additionalData.additional_fare,
        policy=policy,
    )

    ticketData = ticketView(session, outcome.ticket)
    response = {
        "success": True,
        "action": outcome.action,
        "message": outcome.message,
        "ticket": ticketData,
    }
    if outcome.additional_fare is not None:
        response["additional_fare"] = float(outcome.additional_fare)
    if outcome.action == TicketAction.SCAN:
        response["rider"] = riders.lookup(outcome.ticket.user_id)

    if outcome.action != TicketAction.SCAN:
        logEvent(
            fParam.conductor_id,
            request_info,
            {
                "action": outcome.action.value,
                "qr_ticket_code": fParam.qr_ticket_code,
                "additional_fare": response.get("additional_fare"),
                "notes": additionalData.notes,
                "ticket": jsonable_encoder(ticketData),
            },
        )
    return response


## API endpoints [Conductor]
@route_conductor.post(
    URL_VERIFY,
    tags=["Verify"],
    response_model=LoginResponse | VerifyResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidInput,
            exceptions.InvalidCredentials,
            exceptions.InactiveAccount,
            exceptions.NoActiveSession,
            exceptions.RouteNotFound,
            exceptions.TicketNotFound,
            exceptions.WrongRoute,
            exceptions.AlreadyBoarded,
            exceptions.TicketUnpaid,
            exceptions.NotYetBoarded,
            exceptions.AlreadyDroppedOff,
            exceptions.DropoffAlreadyConfirmed,
            exceptions.StationNotOnRoute,
            exceptions.LockAcquireTimeout,
            exceptions.RiderDirectoryUnavailable,
        ]
    ),
    description="""
    Conductor login and ticket verification.

    LOGIN: `{action: "LOGIN", conductor_id, pin, route_id?, bus_id?}`.
    Opens a duty session on the requested route, or on the conductor default route.
    Any previous active session of the conductor is ended at the same time.

    VERIFY_TICKET: `{action: "VERIFY_TICKET", conductor_id, qr_ticket_code, ticket_action, additional_data?}`.
    The ticket action may also be sent directly as `action`.
    SCAN reads the ticket together with the rider name and phone from the user service,
    CONFIRM_BOARDING and CONFIRM_DROPOFF move it through its lifecycle,
    CHANGE_DROPOFF moves the drop-off station and adds the additional fare.
    Only paid tickets can board.
    The ticket must belong to the route of the conductor's active session.
    """,
)
async def verify_ticket(
    body: Dict[str, Any] = Body(),
    verifierFactory: Callable[[Session], CredentialVerifier] = Depends(
        getters.credentialVerifier
    ),
    policy: AdditionalFarePolicy = Depends(getters.additionalFarePolicy),
    riders: RiderDirectory = Depends(getters.riderDirectory),
    now: datetime = Depends(getters.currentTime),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        action = body.get("action")
        if action == RequestAction.LOGIN.value:
            return login(session, verifierFactory(session), body, now, request_info)
        if action == RequestAction.VERIFY_TICKET.value or action in [
            ticketAction.value for ticketAction in TicketAction
        ]:
            return verify(session, policy, riders, body, now, request_info)
        raise exceptions.InvalidInput("Invalid action")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_conductor.get(
    URL_VERIFY,
    tags=["Verify"],
    response_model=SessionResponse | ManifestResponse,
    responses=makeExceptionResponses([exceptions.SessionNotFound]),
    description="""
    Reads the conductor's duty state.
    action=session returns the active session.
    action=manifest returns the passengers currently aboard the session route, for today, in boarding order.
    Without an active session both answer 404.
    """,
)
async def fetch_verify(
    qParam: QueryParams = Depends(),
    now: datetime = Depends(getters.currentTime),
):
    try:
        session = sessionMaker()
        try:
            conductorSession = session_registry.getActiveSession(
                session, qParam.conductor_id
            )
        except exceptions.NoActiveSession:
            raise exceptions.SessionNotFound()

        if qParam.action == QueryAction.SESSION:
            return {"success": True, "session": sessionView(conductorSession)}

        tickets = buildManifest(session, conductorSession.route_id, serviceDate(now))
        return {
            "route_id": conductorSession.route_id,
            "passenger_count": len(tickets),
            "passengers": ticketViews(session, tickets),
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_conductor.put(
    URL_VERIFY,
    tags=["Verify"],
    response_model=MessageResponse,
    responses=makeExceptionResponses(
        [exceptions.InvalidInput, exceptions.NoActiveSession]
    ),
    description="""
    Updates the conductor's duty session.
    LOGOUT ends the active session, logging out twice is not an error.
    UPDATE_LOCATION records the reported location, it requires an active session.
    """,
)
async def update_verify(
    fParam: SessionForm = Depends(),
    now: datetime = Depends(getters.currentTime),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        if fParam.action == SessionAction.LOGOUT:
            endedCount = session_registry.logout(session, fParam.conductor_id, now)
            logEvent(
                fParam.conductor_id,
                request_info,
                {"action": fParam.action.value, "ended_sessions": endedCount},
            )
            return {"success": True, "message": "Logged out successfully"}

        if fParam.location is None:
            raise exceptions.InvalidInput("Location is required")
        session_registry.updatePing(session, fParam.conductor_id, fParam.location, now)
        logEvent(
            fParam.conductor_id,
            request_info,
            {"action": fParam.action.value, "location": fParam.location},
        )
        return {"success": True, "message": "Location updated"}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
