"""
Conductor credential verification.

The verification engine never embeds conductor data; it receives a
`CredentialVerifier` through dependency injection and only learns who the
conductor is and which route they default to.
"""

from abc import ABC, abstractmethod
from pydantic import BaseModel
from sqlalchemy.orm.session import Session

from transitpass.src import argon2, exceptions
from transitpass.src.db import Conductor
from transitpass.src.enums import AccountStatus


class ConductorIdentity(BaseModel):
    conductor_id: str
    conductor_name: str
    default_route_id: str


class CredentialVerifier(ABC):
    @abstractmethod
    def verify(self, conductorId: str, pin: str) -> ConductorIdentity:
        """
        Check a conductor PIN.

        Raises:
            exceptions.InvalidCredentials: Unknown conductor or wrong PIN.
            exceptions.InactiveAccount: The conductor is suspended.
        """


class DatabaseCredentialVerifier(CredentialVerifier):
    """Verifies PINs against the argon2 hashes of the `conductor` table."""

    def __init__(self, session: Session):
        self.session = session

    def verify(self, conductorId: str, pin: str) -> ConductorIdentity:
        conductor = (
            self.session.query(Conductor).filter(Conductor.id == conductorId).first()
        )
        if conductor is None:
            raise exceptions.InvalidCredentials()
        if not argon2.checkPassword(pin, conductor.pin):
            raise exceptions.InvalidCredentials()
        if conductor.status != AccountStatus.ACTIVE:
            raise exceptions.InactiveAccount()
        return ConductorIdentity(
            conductor_id=conductor.id,
            conductor_name=conductor.name,
            default_route_id=conductor.default_route_id,
        )
