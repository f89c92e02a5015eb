"""
Read-only lookups into the route and station catalogue.
"""

from datetime import datetime
from typing import List
from sqlalchemy.orm.session import Session

from transitpass.src import exceptions, fare_calculator
from transitpass.src.db import Route, Station, SurchargeRule
from transitpass.src.enums import RuleStatus


def getRoute(session: Session, routeId: str) -> Route:
    route = (
        session.query(Route)
        .filter(Route.id == routeId)
        .filter(Route.is_active.is_(True))
        .first()
    )
    if route is None:
        raise exceptions.RouteNotFound()
    return route


def getStation(session: Session, routeId: str, stationId: str) -> Station:
    """
    Raises:
        exceptions.StationNotOnRoute: The station does not exist on the route.
    """
    station = (
        session.query(Station)
        .filter(Station.id == stationId)
        .filter(Station.route_id == routeId)
        .first()
    )
    if station is None:
        raise exceptions.StationNotOnRoute()
    return station


def getStations(session: Session, stationIds: List[str]) -> dict[str, Station]:
    if not stationIds:
        return {}
    stations = session.query(Station).filter(Station.id.in_(stationIds)).all()
    return {station.id: station for station in stations}


def routeRules(session: Session, routeId: str) -> List[SurchargeRule]:
    return (
        session.query(SurchargeRule)
        .filter(SurchargeRule.route_id == routeId)
        .filter(SurchargeRule.status == RuleStatus.ACTIVE)
        .order_by(SurchargeRule.start_time.asc())
        .all()
    )


def quoteFare(
    session: Session, route: Route, station: Station, at: datetime
) -> fare_calculator.FareQuote:
    """
    Fare from the start of the route to `station` at journey time `at`.

    The distance is the number of stations travelled past the first one.
    """
    distance = fare_calculator.distanceFare(route.stop_fare, station.order_on_route - 1)
    return fare_calculator.calculateFare(
        route.base_fare, distance, routeRules(session, route.id), at
    )
