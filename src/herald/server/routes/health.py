"""Health check routes."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from herald.server.deps import ComponentsDep

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Liveness: the process is up and serving."""
    return {"status": "healthy", "message": "Server is running"}


@router.get("/ready")
async def readiness_check(components: ComponentsDep) -> JSONResponse:
    """Readiness: the database answers queries."""
    if not await components.database.ping():
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return JSONResponse(content={"status": "ready"})
