from fastapi import FastAPI
from transitpass.api import fare, ticket, verify
from transitpass.src.enums import AppID
from transitpass.src.functions import registerExceptionHandlers


# ------------------------------------------------------
# Create separate FastAPI apps for each user domain
# ------------------------------------------------------
app_conductor = FastAPI(title="Conductor APP")
app_public = FastAPI(title="Public APP")

# Tag each app with its AppID
app_conductor.state.id = AppID.CONDUCTOR
app_public.state.id = AppID.PUBLIC

# Render errors as {"error": ..., "code": ...}
registerExceptionHandlers(app_conductor)
registerExceptionHandlers(app_public)


# ------------------------------------------------------
# Conductor routers
# ------------------------------------------------------
app_conductor.include_router(verify.route_conductor)


# ------------------------------------------------------
# Public routers
# ------------------------------------------------------
app_public.include_router(ticket.route_public)
app_public.include_router(fare.route_public)
