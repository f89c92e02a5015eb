import argparse
from datetime import datetime, time, timezone
from decimal import Decimal
from fastapi.encoders import jsonable_encoder

from transitpass.src import argon2, catalogue, ticket_ledger
from transitpass.src.enums import AccountStatus, AdjustmentType, Currency, DayOfWeek
from transitpass.src.db import (
    Conductor,
    Route,
    Station,
    SurchargeRule,
    sessionMaker,
    engine,
    ORMbase,
)


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    session = sessionMaker()
    ORMbase.metadata.drop_all(engine)
    session.commit()
    print("* All tables deleted")
    session.close()


def createTables():
    session = sessionMaker()
    ORMbase.metadata.create_all(engine)
    session.commit()
    print("* All tables created")
    session.close()


def initDB():
    session = sessionMaker()
    routes = [
        Route(id="HAR-CBD-AVENUE", name="CBD to Avondale", base_fare=Decimal("1.00")),
        Route(
            id="HAR-CBD-BORROWDALE", name="CBD to Borrowdale", base_fare=Decimal("1.50")
        ),
        Route(
            id="HAR-AVENUE-BORROWDALE",
            name="Avondale to Borrowdale",
            base_fare=Decimal("1.25"),
        ),
    ]
    for route in routes:
        route.stop_fare = Decimal(0)
        route.currency = Currency.USD.value
    session.add_all(routes)
    session.flush()
    print("* Created routes")

    stations = [
        ("CBD-S01", "HAR-CBD-AVENUE", "CBD Rank (Start)", 1),
        ("CBD-S02", "HAR-CBD-AVENUE", "Simon Muzenda Street", 2),
        ("CBD-S03", "HAR-CBD-AVENUE", "Fourth Street", 3),
        ("AVENUE-S01", "HAR-CBD-AVENUE", "Five Avenue Shopping Centre", 4),
        ("AVENUE-S02", "HAR-CBD-AVENUE", "Avondale Shops (End)", 5),
        ("CBD-B01", "HAR-CBD-BORROWDALE", "CBD Rank (Start)", 1),
        ("CBD-B02", "HAR-CBD-BORROWDALE", "Samora Machel Avenue", 2),
        ("BORROWDALE-B01", "HAR-CBD-BORROWDALE", "Borrowdale Shopping Centre", 3),
        ("BORROWDALE-B02", "HAR-CBD-BORROWDALE", "Borrowdale Race Course", 4),
    ]
    for stationId, routeId, name, order in stations:
        session.add(
            Station(id=stationId, route_id=routeId, name=name, order_on_route=order)
        )
    session.flush()
    print("* Created stations")

    peaks = [
        ("HAR-CBD-AVENUE", "Morning Peak Surcharge", time(6), time(9), "0.50"),
        ("HAR-CBD-AVENUE", "Evening Peak Surcharge", time(16), time(19), "0.50"),
        ("HAR-CBD-BORROWDALE", "Morning Peak Surcharge", time(6), time(9), "0.75"),
        ("HAR-CBD-BORROWDALE", "Evening Peak Surcharge", time(16), time(19), "0.75"),
    ]
    for routeId, name, startTime, endTime, value in peaks:
        session.add(
            SurchargeRule(
                route_id=routeId,
                name=name,
                day_of_week=DayOfWeek.ALL.value,
                start_time=startTime,
                end_time=endTime,
                adjustment_type=AdjustmentType.FLAT_ADDITION.value,
                value=Decimal(value),
            )
        )
    session.flush()
    print("* Created surcharge rules")

    session.add(
        Conductor(
            id="COND_001",
            name="John Conductor",
            pin=argon2.makePassword("1234"),
            default_route_id="HAR-CBD-AVENUE",
            status=AccountStatus.ACTIVE,
        )
    )
    session.add(
        Conductor(
            id="COND_002",
            name="Mary Conductor",
            pin=argon2.makePassword("5678"),
            default_route_id="HAR-CBD-BORROWDALE",
            status=AccountStatus.ACTIVE,
        )
    )
    session.commit()
    print("* Created conductors")
    session.close()


def testDB():
    session = sessionMaker()
    now = datetime.now(timezone.utc)
    demoTickets = [
        ("user_123", "HAR-CBD-AVENUE", "AVENUE-S01"),
        ("user_456", "HAR-CBD-BORROWDALE", "BORROWDALE-B01"),
    ]
    for userId, routeId, stationId in demoTickets:
        route = catalogue.getRoute(session, routeId)
        station = catalogue.getStation(session, routeId, stationId)
        quote = catalogue.quoteFare(session, route, station, now)
        ticket = ticket_ledger.issueTicket(
            session,
            userId=userId,
            routeId=routeId,
            stationId=stationId,
            baseFare=quote.subtotal,
            surcharge=quote.total_surcharge,
            currency=route.currency,
            appliedRules=jsonable_encoder(quote.applied_rules),
            now=now,
        )
        print(f"* Created ticket {ticket.qr_ticket_code} on {routeId}")
    session.commit()
    session.close()


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    # remove tables
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add demo tickets")
    args = parser.parse_args()

    if args.cr:
        createTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
    if args.rm:
        removeTables()
