"""
Top‑level API router.

Aggregates the domain routers under their URL prefixes.  When a new
domain is added, include its router here.
"""

from fastapi import APIRouter

from .endpoints import payments, service_requests, services, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(services.router, prefix="/services", tags=["services"])
router.include_router(service_requests.router, prefix="/service-requests", tags=["service-requests"])
router.include_router(payments.router, prefix="/payments", tags=["payments"])
