"""
Client side of the wallet ledger.

The wallet service owns balances; this module only asks it to move money.
`WalletGateway` is injected into the ticket issuance endpoint so tests and
other deployments can substitute their own ledger.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from http import HTTPStatus
import requests

from transitpass.src import exceptions
from transitpass.src.constants import WALLET_SERVICE_TIMEOUT, WALLET_SERVICE_URL
from transitpass.src.urls import URL_WALLET_CREDIT, URL_WALLET_DEBIT


class WalletGateway(ABC):
    @abstractmethod
    def debit(self, userId: str, amount: Decimal, currency: str) -> str:
        """Take `amount` from the user's wallet, return the transaction id."""

    @abstractmethod
    def credit(self, userId: str, amount: Decimal, currency: str) -> str:
        """Give `amount` back to the user's wallet, return the transaction id."""


class HTTPWalletGateway(WalletGateway):
    def __init__(self, baseURL: str = WALLET_SERVICE_URL, timeout=WALLET_SERVICE_TIMEOUT):
        self.baseURL = baseURL
        self.timeout = timeout

    def _post(self, url: str, userId: str, amount: Decimal, currency: str) -> str:
        try:
            response = requests.post(
                self.baseURL + url,
                json={"user_id": userId, "amount": str(amount), "currency": currency},
                timeout=self.timeout,
            )
        except requests.RequestException:
            raise exceptions.WalletUnavailable()

        if response.status_code == HTTPStatus.PAYMENT_REQUIRED:
            raise exceptions.InsufficientFunds()
        if response.status_code not in (HTTPStatus.OK, HTTPStatus.CREATED):
            raise exceptions.WalletUnavailable()
        return response.json()["transaction_id"]

    def debit(self, userId: str, amount: Decimal, currency: str) -> str:
        return self._post(URL_WALLET_DEBIT, userId, amount, currency)

    def credit(self, userId: str, amount: Decimal, currency: str) -> str:
        return self._post(URL_WALLET_CREDIT, userId, amount, currency)
