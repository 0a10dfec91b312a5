from fastapi import APIRouter
from app.api.v1 import admin, analysis, billing, codes, regions, scans

api_router = APIRouter()

api_router.include_router(scans.router, prefix="/scans", tags=["scans"])
api_router.include_router(analysis.router, prefix="/functions", tags=["analysis"])
api_router.include_router(billing.router, prefix="/functions", tags=["billing"])
api_router.include_router(codes.router, prefix="/functions", tags=["codes"])
api_router.include_router(admin.router, prefix="/functions", tags=["admin"])
api_router.include_router(regions.router, tags=["regions"])
