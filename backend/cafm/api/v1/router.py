"""
API v1 router aggregating all endpoints.
"""
from fastapi import APIRouter

from cafm.api.v1.endpoints import work_orders

api_router = APIRouter()

api_router.include_router(work_orders.router, prefix="/work-orders", tags=["Work Orders"])
