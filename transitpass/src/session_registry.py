"""
Conductor duty sessions.

A conductor holds at most one active session. The registry resolves the
route and bus a conductor is currently authorized to verify against.
"""

from datetime import datetime, timedelta
from secrets import token_hex
from sqlalchemy import func, update
from sqlalchemy.orm.session import Session

from transitpass.src import exceptions
from transitpass.src.constants import DEFAULT_BUS_ID
from transitpass.src.credentials import CredentialVerifier
from transitpass.src.db import ConductorSession, Route


def makeSessionId(conductorId: str, now: datetime) -> str:
    return f"SESS_{conductorId}_{int(now.timestamp() * 1000)}_{token_hex(3).upper()}"


def login(
    session: Session,
    verifier: CredentialVerifier,
    conductorId: str,
    pin: str,
    now: datetime,
    routeId: str | None = None,
    busId: str | None = None,
) -> ConductorSession:
    """
    Open a new duty session, superseding any active one.

    The previous session is ended and the new one inserted in the same
    transaction, so no reader ever observes two active sessions.

    Raises:
        exceptions.InvalidCredentials: The verifier rejected the PIN.
        exceptions.RouteNotFound: The requested or default route is unusable.
    """
    identity = verifier.verify(conductorId, pin)
    assignedRoute = routeId or identity.default_route_id

    route = (
        session.query(Route)
        .filter(Route.id == assignedRoute)
        .filter(Route.is_active.is_(True))
        .first()
    )
    if route is None:
        raise exceptions.RouteNotFound()

    session.execute(
        update(ConductorSession)
        .where(ConductorSession.conductor_id == identity.conductor_id)
        .where(ConductorSession.is_active.is_(True))
        .values(is_active=False, shift_end_time=now)
        .execution_options(synchronize_session=False)
    )
    conductorSession = ConductorSession(
        session_id=makeSessionId(identity.conductor_id, now),
        conductor_id=identity.conductor_id,
        conductor_name=identity.conductor_name,
        route_id=route.id,
        bus_id=busId or DEFAULT_BUS_ID,
        is_active=True,
        login_time=now,
        last_ping_time=now,
    )
    session.add(conductorSession)
    session.commit()
    return conductorSession


def getActiveSession(session: Session, conductorId: str) -> ConductorSession:
    """
    Raises:
        exceptions.NoActiveSession: The conductor is not on duty.
    """
    conductorSession = (
        session.query(ConductorSession)
        .filter(ConductorSession.conductor_id == conductorId)
        .filter(ConductorSession.is_active.is_(True))
        .first()
    )
    if conductorSession is None:
        raise exceptions.NoActiveSession()
    return conductorSession


def logout(session: Session, conductorId: str, now: datetime) -> int:
    """
    End the active session. Logging out without one is a successful no-op.

    Returns:
        int: Number of sessions ended (0 or 1).
    """
    result = session.execute(
        update(ConductorSession)
        .where(ConductorSession.conductor_id == conductorId)
        .where(ConductorSession.is_active.is_(True))
        .values(is_active=False, shift_end_time=now)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount


def updatePing(
    session: Session, conductorId: str, location: str, now: datetime
) -> ConductorSession:
    """
    Record the conductor's last reported location.

    Raises:
        exceptions.NoActiveSession: The conductor is not on duty.
    """
    result = session.execute(
        update(ConductorSession)
        .where(ConductorSession.conductor_id == conductorId)
        .where(ConductorSession.is_active.is_(True))
        .values(current_location=location, last_ping_time=now)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    if result.rowcount == 0:
        raise exceptions.NoActiveSession()
    session.expire_all()
    return getActiveSession(session, conductorId)


def closeStaleSessions(session: Session, now: datetime, maxIdle: int) -> int:
    """
    End every active session that has not pinged for `maxIdle` seconds.

    Returns:
        int: Number of sessions ended.
    """
    threshold = now - timedelta(seconds=maxIdle)
    lastSeen = func.coalesce(ConductorSession.last_ping_time, ConductorSession.login_time)
    result = session.execute(
        update(ConductorSession)
        .where(ConductorSession.is_active.is_(True))
        .where(lastSeen < threshold)
        .values(is_active=False, shift_end_time=now)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount
