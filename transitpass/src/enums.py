from enum import Enum, IntEnum


class AppID(IntEnum):
    CONDUCTOR = 1
    PUBLIC = 2


class AccountStatus(IntEnum):
    ACTIVE = 1
    SUSPENDED = 2


class RuleStatus(IntEnum):
    ACTIVE = 1
    INACTIVE = 2


class PaymentStatus(str, Enum):
    PAID = "PAID"
    UNPAID = "UNPAID"


class TicketState(str, Enum):
    ISSUED = "ISSUED"
    BOARDED = "BOARDED"
    DROPPED_OFF = "DROPPED_OFF"


class Currency(str, Enum):
    USD = "USD"
    ZIG = "ZIG"


class AdjustmentType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FLAT_ADDITION = "FLAT_ADDITION"


class DayOfWeek(str, Enum):
    ALL = "ALL"
    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    SUN = "SUN"


class RequestAction(str, Enum):
    LOGIN = "LOGIN"
    VERIFY_TICKET = "VERIFY_TICKET"


class TicketAction(str, Enum):
    SCAN = "SCAN"
    CONFIRM_BOARDING = "CONFIRM_BOARDING"
    CONFIRM_DROPOFF = "CONFIRM_DROPOFF"
    CHANGE_DROPOFF = "CHANGE_DROPOFF"


class QueryAction(str, Enum):
    SESSION = "session"
    MANIFEST = "manifest"


class SessionAction(str, Enum):
    LOGOUT = "LOGOUT"
    UPDATE_LOCATION = "UPDATE_LOCATION"


class FarePolicy(str, Enum):
    CALLER = "CALLER"
    RECOMPUTE = "RECOMPUTE"
