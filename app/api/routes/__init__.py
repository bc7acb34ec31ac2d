"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from app.api.routes.account_routes import router as account_router
from app.api.routes.auth_routes import router as auth_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(account_router)
api_router.include_router(auth_router)
