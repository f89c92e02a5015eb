from datetime import datetime, time, timezone
from decimal import Decimal
from typing import Dict, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event

from transitpass.src import argon2, db, exceptions, getters, openobserve, ticket_ledger
from transitpass.src.db import (
    Conductor,
    ORMbase,
    Route,
    Station,
    SurchargeRule,
    sessionMaker,
)
from transitpass.src.enums import AccountStatus, AdjustmentType, PaymentStatus
from transitpass.src.riders import Rider, RiderDirectory
from transitpass.src.wallet import WalletGateway

# 12:00 in Harare, outside both peak windows
NOW = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)
# 07:30 in Harare, inside the morning peak
MORNING_PEAK = datetime(2026, 10, 19, 5, 30, tzinfo=timezone.utc)

AVENUE = "HAR-CBD-AVENUE"
BORROWDALE = "HAR-CBD-BORROWDALE"


@pytest.fixture()
def engine(tmp_path):
    """
    File backed SQLite engine bound to the application session maker.

    Every transaction starts with BEGIN IMMEDIATE so concurrent writers
    queue on the database lock instead of failing on upgrade.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'transitpass.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    ORMbase.metadata.create_all(engine)
    sessionMaker.configure(bind=engine)
    yield engine
    sessionMaker.configure(bind=db.engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def events(monkeypatch) -> List[dict]:
    """Audit events that would have been sent to OpenObserve."""
    sent = []
    monkeypatch.setattr(openobserve, "logEvent", lambda eventData: sent.append(eventData))
    return sent


@pytest.fixture()
def seeded(engine):
    with sessionMaker() as session:
        session.add_all(
            [
                Route(id=AVENUE, name="CBD to Avondale", base_fare=Decimal("1.00"),
                      stop_fare=Decimal("0.15"), currency="USD", is_active=True),
                Route(id=BORROWDALE, name="CBD to Borrowdale", base_fare=Decimal("1.50"),
                      stop_fare=Decimal("0.15"), currency="USD", is_active=True),
                Route(id="HAR-CLOSED", name="Closed route", base_fare=Decimal("1.00"),
                      stop_fare=Decimal(0), currency="USD", is_active=False),
            ]
        )
        session.flush()
        session.add_all(
            [
                Station(id="CBD-S01", route_id=AVENUE, name="CBD Rank (Start)", order_on_route=1),
                Station(id="CBD-S02", route_id=AVENUE, name="Simon Muzenda Street", order_on_route=2),
                Station(id="CBD-S03", route_id=AVENUE, name="Fourth Street", order_on_route=3),
                Station(id="AVENUE-S01", route_id=AVENUE, name="Five Avenue Shopping Centre", order_on_route=4),
                Station(id="AVENUE-S02", route_id=AVENUE, name="Avondale Shops (End)", order_on_route=5),
                Station(id="CBD-B01", route_id=BORROWDALE, name="CBD Rank (Start)", order_on_route=1),
                Station(id="CBD-B02", route_id=BORROWDALE, name="Samora Machel Avenue", order_on_route=2),
                Station(id="BORROWDALE-B01", route_id=BORROWDALE, name="Borrowdale Shopping Centre", order_on_route=3),
            ]
        )
        session.add_all(
            [
                SurchargeRule(route_id=AVENUE, name="Morning Peak Surcharge",
                              start_time=time(6), end_time=time(9),
                              adjustment_type=AdjustmentType.FLAT_ADDITION.value,
                              value=Decimal("0.50")),
                SurchargeRule(route_id=AVENUE, name="Evening Peak Surcharge",
                              start_time=time(16), end_time=time(19),
                              adjustment_type=AdjustmentType.FLAT_ADDITION.value,
                              value=Decimal("0.50")),
            ]
        )
        session.add_all(
            [
                Conductor(id="COND_001", name="John Conductor", pin=argon2.makePassword("1234"),
                          default_route_id=AVENUE, status=AccountStatus.ACTIVE),
                Conductor(id="COND_002", name="Mary Conductor", pin=argon2.makePassword("5678"),
                          default_route_id=BORROWDALE, status=AccountStatus.ACTIVE),
                Conductor(id="COND_003", name="Suspended Conductor", pin=argon2.makePassword("0000"),
                          default_route_id=AVENUE, status=AccountStatus.SUSPENDED),
            ]
        )
        session.commit()
    return engine


def issue(
    routeId: str = AVENUE,
    stationId: str = "AVENUE-S01",
    totalFare: str = "1.45",
    createdOn: datetime = NOW,
    userId: str = "user_123",
    paymentStatus: PaymentStatus = PaymentStatus.PAID,
) -> str:
    """Store a ticket, paid unless told otherwise, and return its QR code."""
    with sessionMaker() as session:
        ticket = ticket_ledger.issueTicket(
            session,
            userId=userId,
            routeId=routeId,
            stationId=stationId,
            baseFare=Decimal(totalFare),
            surcharge=Decimal(0),
            currency="USD",
            appliedRules=[],
            now=createdOn,
            paymentStatus=paymentStatus,
        )
        session.commit()
        return ticket.qr_ticket_code


class FakeWallet(WalletGateway):
    def __init__(self):
        self.balances: Dict[str, Decimal] = {"user_123": Decimal("10.00")}
        self.debits = []
        self.credits = []

    def debit(self, userId, amount, currency):
        if self.balances.get(userId, Decimal(0)) < amount:
            raise exceptions.InsufficientFunds()
        self.balances[userId] -= amount
        self.debits.append((userId, amount, currency))
        return f"TXN_TEST_{len(self.debits):04d}"

    def credit(self, userId, amount, currency):
        self.balances[userId] = self.balances.get(userId, Decimal(0)) + amount
        self.credits.append((userId, amount, currency))
        return f"TXN_REFUND_{len(self.credits):04d}"


class FakeRiderDirectory(RiderDirectory):
    def __init__(self):
        self.riders = {
            "user_123": Rider(user_id="user_123", user_name="Demo User", user_phone="+263771234567")
        }
        self.lookups = []

    def lookup(self, userId):
        self.lookups.append(userId)
        return self.riders.get(userId)


@pytest.fixture()
def wallet() -> FakeWallet:
    return FakeWallet()


@pytest.fixture()
def riders() -> FakeRiderDirectory:
    return FakeRiderDirectory()


@pytest.fixture()
def client(seeded, wallet, riders, monkeypatch):
    from transitpass.api import verify
    from transitpass.api.controller import app_conductor, app_public
    from transitpass.main import app

    monkeypatch.setattr(verify, "acquireLock", lambda tableName, pk=None: None)
    monkeypatch.setattr(verify, "releaseLock", lambda lock: None)

    app_conductor.dependency_overrides[getters.currentTime] = lambda: NOW
    app_conductor.dependency_overrides[getters.riderDirectory] = lambda: riders
    app_public.dependency_overrides[getters.currentTime] = lambda: NOW
    app_public.dependency_overrides[getters.walletGateway] = lambda: wallet
    yield TestClient(app)
    app_conductor.dependency_overrides.clear()
    app_public.dependency_overrides.clear()
