from fastapi import APIRouter
from app.api.v1.endpoints import auth, health, works

api_router = APIRouter()

# Liveness/readiness probes (/health/live, /health/ready)
api_router.include_router(health.router)

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(works.router)
