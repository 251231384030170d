"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from slotbook.api.v1 import appointments, audit, cron, health, notifications

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Appointment lifecycle
api_router.include_router(
    appointments.router,
    prefix="/appointments",
    tags=["appointments"],
)

# Audit (read-only)
api_router.include_router(
    audit.router,
    prefix="/audit",
    tags=["audit"],
)

# In-app notifications
api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["notifications"],
)

# Scheduler triggers
api_router.include_router(
    cron.router,
    prefix="/cron",
    tags=["cron"],
)
