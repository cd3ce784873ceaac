"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from carpool_backend.app.api.v1.endpoints import proofs

router = APIRouter()

# Live certification endpoints
router.include_router(proofs.router)

# Operator endpoints
router.include_router(proofs.admin_router)
