"""
Application configuration and constants for TransitPass Verify.

This module centralizes environment-based configuration, resource limits,
fare defaults, timezones, and other constants.

Configuration values can be overridden via environment variables.
"""

from decimal import Decimal
from os import environ
from zoneinfo import ZoneInfo


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "TransitPass Verify API Server"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@transitpass.co.zw")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "transitpass")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "transitpass-verify")


# ---------------------------------------------------------------------------
# Redis configuration
# ---------------------------------------------------------------------------
REDIS_HOST = environ.get("REDIS_HOST", "localhost")
REDIS_PORT = environ.get("REDIS_PORT", "6379")
REDIS_PASSWORD = environ.get("REDIS_PASSWORD", "password")


# ---------------------------------------------------------------------------
# Wallet service configuration
# ---------------------------------------------------------------------------
WALLET_SERVICE_URL = environ.get("WALLET_SERVICE_URL", "http://localhost:8090")
WALLET_SERVICE_TIMEOUT = float(environ.get("WALLET_SERVICE_TIMEOUT", "5"))


# ---------------------------------------------------------------------------
# User service configuration (rider display data)
# ---------------------------------------------------------------------------
USER_SERVICE_URL = environ.get("USER_SERVICE_URL", "http://localhost:8091")
USER_SERVICE_TIMEOUT = float(environ.get("USER_SERVICE_TIMEOUT", "5"))


# ---------------------------------------------------------------------------
# Input limits
# ---------------------------------------------------------------------------
MAX_IDENTIFIER_LENGTH = 50  # conductor_id, route_id, station_id, bus_id
MAX_TICKET_CODE_LENGTH = 100
MAX_PIN_LENGTH = 32
MAX_LOCATION_LENGTH = 256
MAX_NOTES_LENGTH = 1024


# ---------------------------------------------------------------------------
# Conductor session constants
# ---------------------------------------------------------------------------
DEFAULT_BUS_ID = environ.get("DEFAULT_BUS_ID", "BUS_001")
# Shifts without a location ping for this long are closed by the cleaner
SESSION_IDLE_TIMEOUT = int(environ.get("SESSION_IDLE_TIMEOUT", str(12 * 60 * 60)))


# ---------------------------------------------------------------------------
# Timezone constants
# ---------------------------------------------------------------------------
TMZ_SERVICE = ZoneInfo(environ.get("SERVICE_TIMEZONE", "Africa/Harare"))


# ---------------------------------------------------------------------------
# Redis mutex lock constants
# ---------------------------------------------------------------------------
MUTEX_LOCK_TIMEOUT = 10  # Lock timeout (in seconds)
MUTEX_LOCK_MAX_WAIT_TIME = 5  # Max blocking wait time (in seconds)


# ---------------------------------------------------------------------------
# Fare constants
# ---------------------------------------------------------------------------
PEAK_SURCHARGE_FRACTION = Decimal(environ.get("PEAK_SURCHARGE_FRACTION", "0.5"))
# CALLER trusts the additional_fare sent by the conductor client,
# RECOMPUTE derives it from the fare rules of the new drop-off station
ADDITIONAL_FARE_POLICY = environ.get("ADDITIONAL_FARE_POLICY", "CALLER")
