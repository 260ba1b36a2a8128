from fastapi import APIRouter
from app.api.v1.endpoints import gate_passes

api_router = APIRouter()

api_router.include_router(gate_passes.router, prefix="/gate-passes", tags=["Gate Passes"])


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint for load balancer"""
    return {"status": "healthy", "service": "campus-gatepass"}
