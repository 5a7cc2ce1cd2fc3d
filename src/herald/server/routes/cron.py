"""Manual trigger for the delivery cycle, for external cron services."""

from fastapi import APIRouter

from herald.db import utc_now
from herald.server.deps import ServiceDep

router = APIRouter()


@router.get("/process-messages")
async def process_messages(service: ServiceDep) -> dict:
    result = await service.trigger_now()
    if result.skipped:
        message = "A delivery cycle is already running; skipped"
    else:
        message = "Scheduled messages processed successfully"
    return {
        "success": True,
        "message": message,
        "result": result.to_dict(),
        "timestamp": utc_now().isoformat(),
    }
