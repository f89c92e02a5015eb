from secrets import token_hex
from sqlalchemy import (
    JSON,
    TEXT,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Time,
    create_engine,
    func,
    text,
)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.dialects.postgresql import JSONB

from transitpass.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
)
from transitpass.src.enums import (
    AccountStatus,
    AdjustmentType,
    Currency,
    DayOfWeek,
    PaymentStatus,
    RuleStatus,
    TicketState,
)


# Global DBMS variables
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")
Money = Numeric(12, 4)


# ----------------------------------- Reference Data ------------------------------------------#
class Route(ORMbase):
    """
    Represents a bus route that tickets are sold for and conductors are assigned to.

    Routes are reference data owned by the route catalogue. The verification
    engine only reads them.

    Columns:
        id (String(50)):
            Primary key. Catalogue code of the route.
            ex:- HAR-CBD-AVENUE

        name (String(100)):
            Human readable route name.
            ex:- CBD to Avondale

        base_fare (Numeric):
            Fare charged for boarding the route, before distance and surcharges.

        stop_fare (Numeric):
            Distance component charged per station travelled beyond the first one.
            Zero for flat-fare routes.

        currency (String(3)):
            Currency in which the fares of this route are expressed.

        is_active (Boolean):
            Inactive routes can not be quoted or assigned to a conductor.

        updated_on (DateTime):
            Timestamp automatically updated when the route record is modified.

        created_on (DateTime):
            Timestamp indicating when the route was initially created.
    """

    __tablename__ = "route"

    id = Column(String(50), primary_key=True)
    name = Column(String(100), nullable=False)
    base_fare = Column(Money, nullable=False)
    stop_fare = Column(Money, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default=Currency.USD.value)
    is_active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Station(ORMbase):
    """
    Represents a logical stop along a route.

    Columns:
        id (String(50)):
            Primary key. Catalogue code of the station.

        route_id (String(50)):
            Foreign key referencing `route.id`.
            A station belongs to exactly one route.

        name (String(100)):
            Display name of the station.

        order_on_route (Integer):
            Position of the station on the route, starting at 1.
            The difference in order between two stations is the distance
            used for fare calculation.
    """

    __tablename__ = "station"

    id = Column(String(50), primary_key=True)
    route_id = Column(
        String(50),
        ForeignKey("route.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(100), nullable=False)
    order_on_route = Column(Integer, nullable=False)
    # Metadata
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class SurchargeRule(ORMbase):
    """
    Represents a named, time-boxed fare adjustment of a route.

    A route may carry any number of rules (ex:- a morning and an evening
    peak). Every rule whose day and time window match the journey time is
    applied on top of the base and distance fare.

    Columns:
        id (Integer):
            Primary key.

        route_id (String(50)):
            Foreign key referencing `route.id`.

        name (String(100)):
            Human readable rule name.
            ex:- Morning Peak Surcharge

        day_of_week (String(3)):
            `DayOfWeek` value. ALL matches every day.

        start_time (Time), end_time (Time):
            Inclusive time-of-day window, in the service timezone.

        adjustment_type (String(16)):
            PERCENTAGE adds `value` percent of the base plus distance fare.
            FLAT_ADDITION adds `value` as an absolute amount.

        value (Numeric):
            Size of the adjustment.

        status (Integer):
            `RuleStatus`. Only ACTIVE rules are applied.
    """

    __tablename__ = "surcharge_rule"

    id = Column(Integer, primary_key=True)
    route_id = Column(
        String(50),
        ForeignKey("route.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(100), nullable=False)
    day_of_week = Column(String(3), nullable=False, default=DayOfWeek.ALL.value)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    adjustment_type = Column(
        String(16), nullable=False, default=AdjustmentType.FLAT_ADDITION.value
    )
    value = Column(Money, nullable=False, default=0)
    status = Column(Integer, nullable=False, default=RuleStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Conductor ------------------------------------------------#
class Conductor(ORMbase):
    """
    Directory entry of a conductor, used by the database backed credential verifier.

    Columns:
        id (String(50)):
            Primary key. Staff code printed on the conductor badge.
            ex:- COND_001

        name (String(100)):
            Full name shown on the passenger manifest and session.

        pin (TEXT):
            Argon2 hash of the conductor PIN.
            Plaintext should never be stored here.

        default_route_id (String(50)):
            Route assigned when the conductor logs in without requesting one.

        status (Integer):
            `AccountStatus`. Suspended conductors can not log in.
    """

    __tablename__ = "conductor"

    id = Column(String(50), primary_key=True)
    name = Column(String(100), nullable=False)
    pin = Column(TEXT, nullable=False)
    default_route_id = Column(String(50), ForeignKey("route.id"), nullable=False)
    status = Column(Integer, nullable=False, default=AccountStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class ConductorSession(ORMbase):
    """
    Represents one duty shift of a conductor on a route and bus.

    A conductor has at most one active session. Logging in again ends the
    previous shift before the new one is created, inside one transaction.
    The partial unique index rejects a second active row for the same
    conductor should two logins interleave.

    Columns:
        session_id (String(100)):
            Primary key. Generated on every login.

        conductor_id (String(50)):
            Identifies the conductor working the shift.

        conductor_name (String(100)):
            Name of the conductor at login time.

        route_id (String(50)):
            Route the conductor is authorized to verify tickets against.

        bus_id (String(50)):
            Bus the conductor is working on.

        is_active (Boolean):
            True until logout, supersession or idle timeout.

        login_time (DateTime):
            Start of the shift.

        shift_end_time (DateTime):
            End of the shift. Null while the session is active.

        current_location (String(256)):
            Last reported location. Opaque, never validated.

        last_ping_time (DateTime):
            Timestamp of the last location report, or the login time.
    """

    __tablename__ = "conductor_session"
    __table_args__ = (
        Index(
            "uq_conductor_session_active",
            "conductor_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    session_id = Column(String(100), primary_key=True)
    conductor_id = Column(String(50), nullable=False, index=True)
    conductor_name = Column(String(100), nullable=False)
    route_id = Column(String(50), ForeignKey("route.id"), nullable=False, index=True)
    bus_id = Column(String(50))
    is_active = Column(Boolean, nullable=False, default=True)
    login_time = Column(DateTime(timezone=True), nullable=False)
    shift_end_time = Column(DateTime(timezone=True))
    current_location = Column(String(256))
    last_ping_time = Column(DateTime(timezone=True))


# ----------------------------------- Ticket ---------------------------------------------------#
class Ticket(ORMbase):
    """
    The authoritative record of one purchased fare.

    Tickets are created by the payment flow and afterwards only mutated by
    the boarding verifier, through conditional updates. They are never
    deleted and serve as the audit record of the journey.

    Columns:
        id (Integer):
            Primary key.

        transaction_id (String(50)):
            Identifier of the wallet transaction that paid for the ticket.

        qr_ticket_code (String(100)):
            Opaque code printed in the QR. Unique.

        user_id (String(50)):
            Rider who bought the ticket.

        route_id (String(50)):
            Route the ticket is valid on.

        intended_station_id (String(50)):
            Drop-off station chosen at purchase.

        actual_dropoff_station_id (String(50)):
            Drop-off station after a change or confirmation.
            Mutable only while the drop-off is not confirmed.

        base_fare (Numeric):
            Base plus distance fare at issuance.

        surcharge (Numeric):
            Sum of the surcharges applied at issuance.

        total_fare (Numeric):
            Amount charged. Only grows, through drop-off changes.

        currency (String(3)):
            Currency of the fares.

        payment_status (String(8)):
            `PaymentStatus`.

        boarding_confirmed (Boolean), boarding_time (DateTime):
            Set together, exactly once, by the boarding confirmation.

        dropoff_confirmed (Boolean), dropoff_time (DateTime):
            Set together, exactly once, by the drop-off confirmation.
            Requires boarding_confirmed.

        verifying_conductor_id (String(50)):
            Conductor who confirmed the boarding.

        applied_rules (JSON):
            Surcharge rules applied at issuance.

        updated_on (DateTime), created_on (DateTime):
            Metadata. The created_on date decides which manifest day the
            ticket belongs to.
    """

    __tablename__ = "ticket"
    __table_args__ = (
        Index("ix_ticket_manifest", "route_id", "boarding_confirmed", "dropoff_confirmed"),
    )

    id = Column(Integer, primary_key=True)
    transaction_id = Column(
        String(50),
        unique=True,
        nullable=False,
        default=lambda: f"TXN_{token_hex(8).upper()}",
    )
    qr_ticket_code = Column(
        String(100),
        unique=True,
        nullable=False,
        default=lambda: f"TICKET_{token_hex(12).upper()}",
    )
    user_id = Column(String(50), nullable=False, index=True)
    route_id = Column(String(50), ForeignKey("route.id"), nullable=False)
    intended_station_id = Column(String(50), ForeignKey("station.id"), nullable=False)
    actual_dropoff_station_id = Column(String(50), ForeignKey("station.id"))
    base_fare = Column(Money, nullable=False)
    surcharge = Column(Money, nullable=False, default=0)
    total_fare = Column(Money, nullable=False)
    currency = Column(String(3), nullable=False)
    payment_status = Column(
        String(8), nullable=False, default=PaymentStatus.UNPAID.value
    )
    boarding_confirmed = Column(Boolean, nullable=False, default=False)
    boarding_time = Column(DateTime(timezone=True))
    dropoff_confirmed = Column(Boolean, nullable=False, default=False)
    dropoff_time = Column(DateTime(timezone=True))
    verifying_conductor_id = Column(String(50), index=True)
    applied_rules = Column(JSONType, nullable=False, default=list)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())

    @property
    def state(self) -> TicketState:
        if self.dropoff_confirmed:
            return TicketState.DROPPED_OFF
        if self.boarding_confirmed:
            return TicketState.BOARDED
        return TicketState.ISSUED
