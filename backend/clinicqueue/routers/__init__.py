"""Routers package for the clinic queue API."""

from .auth import router as auth_router
from .patients import router as patients_router, appointments_router
from .queue import router as queue_router

__all__ = [
    "auth_router",
    "patients_router",
    "appointments_router",
    "queue_router"
]
