from datetime import datetime
from typing import List
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from transitpass.api.ticket import AppliedRuleSchema
from transitpass.src import catalogue, exceptions, getters
from transitpass.src.constants import MAX_IDENTIFIER_LENGTH
from transitpass.src.db import sessionMaker
from transitpass.src.functions import makeExceptionResponses
from transitpass.src.urls import URL_FARE

route_public = APIRouter()


## Output Schema
class FareQuoteSchema(BaseModel):
    route_id: str
    station_id: str
    currency: str
    base_fare: float
    distance_fare: float
    subtotal: float
    total_surcharge: float
    total_fare: float
    is_peak: bool
    applied_rules: List[AppliedRuleSchema]


## Query Parameters
class QueryParams(BaseModel):
    route_id: str = Field(Query(min_length=1, max_length=MAX_IDENTIFIER_LENGTH))
    station_id: str = Field(Query(min_length=1, max_length=MAX_IDENTIFIER_LENGTH))
    at: datetime | None = Field(
        Query(default=None, description="Journey time, defaults to now")
    )


## API endpoints [Public]
@route_public.get(
    URL_FARE,
    tags=["Fare"],
    response_model=FareQuoteSchema,
    responses=makeExceptionResponses(
        [exceptions.RouteNotFound, exceptions.StationNotOnRoute]
    ),
    description="""
    Quotes the fare from the start of the route to the given station.
    The base and per station fares of the route are combined with every surcharge rule active at the journey time.
    Overlapping rules stack. Nothing is charged or stored.
    """,
)
async def fetch_fare(
    qParam: QueryParams = Depends(),
    now: datetime = Depends(getters.currentTime),
):
    try:
        session = sessionMaker()
        route = catalogue.getRoute(session, qParam.route_id)
        station = catalogue.getStation(session, route.id, qParam.station_id)
        quote = catalogue.quoteFare(session, route, station, qParam.at or now)

        return {
            "route_id": route.id,
            "station_id": station.id,
            "currency": route.currency,
            "base_fare": float(quote.base_fare),
            "distance_fare": float(quote.distance_fare),
            "subtotal": float(quote.subtotal),
            "total_surcharge": float(quote.total_surcharge),
            "total_fare": float(quote.total_fare),
            "is_peak": quote.is_peak,
            "applied_rules": [
                {
                    "rule_id": rule.rule_id,
                    "rule_name": rule.rule_name,
                    "adjustment_type": rule.adjustment_type.value,
                    "surcharge": float(rule.surcharge),
                    "time_range": rule.time_range,
                }
                for rule in quote.applied_rules
            ],
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
