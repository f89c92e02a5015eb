"""
Fare calculation for route tickets.

Every function here is pure: the journey time is always passed in, the wall
clock is never read. Amounts are handled as `Decimal` and are not rounded,
rounding is left to presentation.

The fare of a journey is:
    subtotal = base fare + distance fare
    total    = subtotal + surcharges of every rule active at the journey time
"""

from datetime import datetime, time
from decimal import Decimal
from typing import Iterable, List
from pydantic import BaseModel, ConfigDict

from transitpass.src import exceptions
from transitpass.src.constants import PEAK_SURCHARGE_FRACTION, TMZ_SERVICE
from transitpass.src.enums import AdjustmentType, DayOfWeek, RuleStatus

WEEKDAYS = [
    DayOfWeek.MON,
    DayOfWeek.TUE,
    DayOfWeek.WED,
    DayOfWeek.THU,
    DayOfWeek.FRI,
    DayOfWeek.SAT,
    DayOfWeek.SUN,
]


class FareRule(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    name: str
    day_of_week: DayOfWeek = DayOfWeek.ALL
    start_time: time
    end_time: time
    adjustment_type: AdjustmentType
    value: Decimal
    status: RuleStatus = RuleStatus.ACTIVE


class AppliedRule(BaseModel):
    rule_id: int | None
    rule_name: str
    adjustment_type: AdjustmentType
    surcharge: Decimal
    time_range: str


class FareQuote(BaseModel):
    base_fare: Decimal
    distance_fare: Decimal
    subtotal: Decimal
    total_surcharge: Decimal
    total_fare: Decimal
    is_peak: bool
    applied_rules: List[AppliedRule]


def toDecimal(amount, name: str) -> Decimal:
    """Convert a numeric input to Decimal, rejecting negatives."""
    if isinstance(amount, bool) or amount is None:
        raise exceptions.InvalidFareInput(name)
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except ArithmeticError:
        raise exceptions.InvalidFareInput(name)
    if not value.is_finite() or value < 0:
        raise exceptions.InvalidFareInput(name)
    return value


def distanceFare(stopFare, stationDelta: int) -> Decimal:
    """
    Distance component of a fare.

    Args:
        stopFare: Amount charged per station travelled.
        stationDelta (int): Number of stations between boarding and drop-off.
            Zero for an intra-station journey.

    Raises:
        exceptions.InvalidFareInput: For a negative delta or stop fare.
    """
    if isinstance(stationDelta, bool) or not isinstance(stationDelta, int):
        raise exceptions.InvalidFareInput("station delta")
    if stationDelta < 0:
        raise exceptions.InvalidFareInput("station delta")
    return toDecimal(stopFare, "stop fare") * stationDelta


def computeFare(
    baseFare, distanceAmount, isPeakHour: bool, peakSurcharge=PEAK_SURCHARGE_FRACTION
) -> Decimal:
    """
    Total fare under a single peak flag.

    The peak surcharge is a fraction of base plus distance fare.

    Example:
        >>> computeFare(Decimal("1.50"), Decimal("0.45"), True)
        Decimal('2.925')
    """
    subtotal = toDecimal(baseFare, "base fare") + toDecimal(distanceAmount, "distance")
    if isPeakHour:
        return subtotal + subtotal * toDecimal(peakSurcharge, "peak surcharge")
    return subtotal


def localTime(at: datetime) -> datetime:
    """Journey time in the service timezone. Naive values are taken as local."""
    if at.tzinfo is None:
        return at
    return at.astimezone(TMZ_SERVICE)


def ruleMatches(rule: FareRule, at: datetime) -> bool:
    if rule.status != RuleStatus.ACTIVE:
        return False
    local = localTime(at)
    if rule.day_of_week != DayOfWeek.ALL and rule.day_of_week != WEEKDAYS[local.weekday()]:
        return False
    return rule.start_time <= local.time() <= rule.end_time


def activeRules(rules: Iterable, at: datetime) -> List[FareRule]:
    """
    Select the rules in effect at the journey time, ordered by window start.

    Args:
        rules (Iterable): `FareRule` instances or objects carrying the same
            attributes (ex:- `SurchargeRule` rows).
        at (datetime): Journey time.
    """
    fareRules = [
        rule if isinstance(rule, FareRule) else FareRule.model_validate(rule)
        for rule in rules
    ]
    matching = [rule for rule in fareRules if ruleMatches(rule, at)]
    return sorted(matching, key=lambda rule: rule.start_time)


def isPeakHour(rules: Iterable, at: datetime) -> bool:
    return len(activeRules(rules, at)) > 0


def surchargeOf(rule: FareRule, subtotal: Decimal) -> Decimal:
    value = toDecimal(rule.value, "surcharge value")
    if rule.adjustment_type == AdjustmentType.PERCENTAGE:
        return subtotal * value / 100
    return value


def calculateFare(baseFare, distanceAmount, rules: Iterable, at: datetime) -> FareQuote:
    """
    Fare of a journey under the route's surcharge rules.

    Each active rule contributes independently: a PERCENTAGE rule adds the
    given percent of base plus distance fare, a FLAT_ADDITION rule adds its
    value. Overlapping windows stack.

    Args:
        baseFare: Base fare of the route.
        distanceAmount: Distance component, see `distanceFare`.
        rules (Iterable): Surcharge rules of the route.
        at (datetime): Journey time.

    Returns:
        FareQuote: Breakdown of the fare and the rules applied.
    """
    base = toDecimal(baseFare, "base fare")
    distance = toDecimal(distanceAmount, "distance")
    subtotal = base + distance

    appliedRules = []
    totalSurcharge = Decimal(0)
    for rule in activeRules(rules, at):
        surcharge = surchargeOf(rule, subtotal)
        totalSurcharge += surcharge
        appliedRules.append(
            AppliedRule(
                rule_id=rule.id,
                rule_name=rule.name,
                adjustment_type=rule.adjustment_type,
                surcharge=surcharge,
                time_range=f"{rule.start_time.isoformat()}-{rule.end_time.isoformat()}",
            )
        )

    return FareQuote(
        base_fare=base,
        distance_fare=distance,
        subtotal=subtotal,
        total_surcharge=totalSurcharge,
        total_fare=subtotal + totalSurcharge,
        is_peak=len(appliedRules) > 0,
        applied_rules=appliedRules,
    )
