"""
API router initialization and setup.

``api_router`` is mounted under /api/v1 (catalog and signed-in dashboard).
``hooks_router`` is mounted under /api and keeps the unversioned paths that
Stripe and the cron scheduler are configured with.
"""
from fastapi import APIRouter
from .endpoints import cards, dashboard, billing, reminders

api_router = APIRouter()

api_router.include_router(
    cards.router,
    prefix="/cards",
    tags=["cards"]
)

api_router.include_router(
    dashboard.router,
    prefix="/me",
    tags=["dashboard"]
)

hooks_router = APIRouter()

hooks_router.include_router(
    billing.router,
    prefix="/stripe",
    tags=["billing"]
)

hooks_router.include_router(
    reminders.router,
    prefix="/reminders",
    tags=["reminders"]
)
