from fastapi import APIRouter

from therapy_copilot.api.clients import router as clients_router
from therapy_copilot.api.sessions import router as sessions_router, client_router as client_sessions_router
from therapy_copilot.api.impressions import router as impressions_router
from therapy_copilot.api.plans import router as plans_router
from therapy_copilot.api.notifications import router as notifications_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(clients_router)
api_router.include_router(sessions_router)
api_router.include_router(client_sessions_router)
api_router.include_router(impressions_router)
api_router.include_router(plans_router)
api_router.include_router(notifications_router)
