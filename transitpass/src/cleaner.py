import datetime, logging
from transitpass.src.constants import SESSION_IDLE_TIMEOUT
from transitpass.src.db import sessionMaker
from transitpass.src.session_registry import closeStaleSessions

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Cleaner")


def closeIdleSessions(maxIdle: int = SESSION_IDLE_TIMEOUT) -> int:
    currentTime = datetime.datetime.now(datetime.timezone.utc)
    with sessionMaker() as session:
        closedCount = closeStaleSessions(session, currentTime, maxIdle)
    logger.info(f"Closed {closedCount} conductor sessions idle for {maxIdle} seconds")
    return closedCount


def main():
    try:
        closeIdleSessions()
    except Exception:
        logger.exception("cleaner.py failed")


if __name__ == "__main__":
    main()
