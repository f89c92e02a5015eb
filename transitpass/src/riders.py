"""
Client side of the rider directory.

Conductors see who they are scanning: the user service owns rider profiles
and this module only reads the display fields of one rider.
"""

from abc import ABC, abstractmethod
from http import HTTPStatus
from typing import Optional
import requests
from pydantic import BaseModel

from transitpass.src import exceptions
from transitpass.src.constants import USER_SERVICE_TIMEOUT, USER_SERVICE_URL
from transitpass.src.urls import URL_USER_PROFILE


class Rider(BaseModel):
    user_id: str
    user_name: Optional[str] = None
    user_phone: Optional[str] = None


class RiderDirectory(ABC):
    @abstractmethod
    def lookup(self, userId: str) -> Rider | None:
        """Display data of a rider, None when the directory does not know them."""


class HTTPRiderDirectory(RiderDirectory):
    def __init__(self, baseURL: str = USER_SERVICE_URL, timeout=USER_SERVICE_TIMEOUT):
        self.baseURL = baseURL
        self.timeout = timeout

    def lookup(self, userId: str) -> Rider | None:
        try:
            response = requests.get(
                self.baseURL + URL_USER_PROFILE.format(user_id=userId),
                timeout=self.timeout,
            )
        except requests.RequestException:
            raise exceptions.RiderDirectoryUnavailable()

        if response.status_code == HTTPStatus.NOT_FOUND:
            return None
        if response.status_code != HTTPStatus.OK:
            raise exceptions.RiderDirectoryUnavailable()
        profile = response.json()
        return Rider(
            user_id=userId,
            user_name=profile.get("name"),
            user_phone=profile.get("phone"),
        )
