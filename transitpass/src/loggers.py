from transitpass.src import openobserve
from transitpass.src.schemas import RequestInfo


def logEvent(conductorId: str | None, requestInfo: RequestInfo, data: dict) -> None:
    """
    Log an event to OpenObserve with request and conductor context.

    Args:
        conductorId (str | None): Conductor performing the action, if known.
        requestInfo (RequestInfo): Metadata about the current request.
        data (dict): Additional event-specific details to include in the log.

    Notes:
        - Automatically attaches `_app_id`, `_method`, `_path` and `_conductor_id`.
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
        "_app_id": requestInfo.app_id,
    }
    if conductorId is not None:
        logDetails["_conductor_id"] = conductorId

    logDetails.update(data)
    openobserve.logEvent(logDetails)
