# api/v1/router.py
from fastapi import APIRouter

from . import engagement, plans, preferences, variations

api_router = APIRouter()

api_router.include_router(engagement.router, prefix="/engagement", tags=["Engagement"])
api_router.include_router(plans.router, prefix="/plans", tags=["Plans"])
api_router.include_router(variations.router, prefix="/variations", tags=["Variations"])

# preferences live *under* the customer resource
api_router.include_router(
    preferences.router,
    prefix="/customers",      # results in /customers/{customer_id}/preferences
    tags=["Preferences"],
)
