"""API V1 Router"""

from fastapi import APIRouter

# Import endpoint routers
from ambulance_billing.api.v1.endpoints import admin, ambulances, auth, bills, history

# Create API v1 router
api_router = APIRouter()

# Include endpoint routers with prefixes and tags
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(bills.router, prefix="/bills", tags=["Bills"])
api_router.include_router(ambulances.router, prefix="/ambulances", tags=["Ambulances"])
api_router.include_router(history.router, prefix="/history", tags=["Activity History"])
api_router.include_router(admin.router, prefix="/admin", tags=["Administration"])
