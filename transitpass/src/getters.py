from datetime import datetime, timezone
from typing import Callable
from fastapi import Request
from sqlalchemy.orm.session import Session

from transitpass.src import schemas
from transitpass.src.boarding_verifier import AdditionalFarePolicy, farePolicy
from transitpass.src.credentials import CredentialVerifier, DatabaseCredentialVerifier
from transitpass.src.riders import HTTPRiderDirectory, RiderDirectory
from transitpass.src.wallet import HTTPWalletGateway, WalletGateway


def requestInfo(request: Request) -> schemas.RequestInfo:
    """
    Extract metadata about the incoming request.

    Args:
        request (Request): FastAPI request object.

    Returns:
        schemas.RequestInfo: Pydantic model containing:
            - method (str): HTTP method (GET, POST, etc.).
            - path (str): Path portion of the request URL.
            - app_id (int): Application ID from app state.
    """
    return schemas.RequestInfo(
        method=request.method,
        path=request.url.path,
        app_id=request.scope["app"].state.id,
    )


def currentTime() -> datetime:
    """Time of the request, in UTC."""
    return datetime.now(timezone.utc)


def credentialVerifier() -> Callable[[Session], CredentialVerifier]:
    """
    Factory of the credential verifier, bound to the request's DB session
    by the endpoint.
    """
    return DatabaseCredentialVerifier


def walletGateway() -> WalletGateway:
    return HTTPWalletGateway()


def riderDirectory() -> RiderDirectory:
    return HTTPRiderDirectory()


def additionalFarePolicy() -> AdditionalFarePolicy:
    return farePolicy()
