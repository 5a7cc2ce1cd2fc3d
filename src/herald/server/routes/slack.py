"""Slack routes: channels, immediate sends and scheduled messages.

Request bodies use the frontend's camelCase field names. Fields are
optional at the schema level so that missing values reach the domain
validators and come back as ``validation_error`` rather than a schema
error.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from herald.errors import PRIVATE_CHANNEL_WARNING, ValidationError
from herald.server.deps import ServiceDep, TransportDep

router = APIRouter()
logger = logging.getLogger(__name__)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendMessageRequest(CamelModel):
    team_id: str | None = None
    channel_id: str | None = None
    message: str | None = None


class ScheduleMessageRequest(CamelModel):
    team_id: str | None = None
    channel_id: str | None = None
    channel_name: str | None = None
    message: str | None = None
    # ISO-8601 string or epoch milliseconds
    scheduled_time: str | int | float | datetime | None = None


class CancelMessageRequest(CamelModel):
    team_id: str | None = None


@router.get("/channels/{team_id}")
async def list_channels(team_id: str, transport: TransportDep) -> dict:
    channels = await transport.list_channels(team_id)
    return {
        "channels": [
            {"id": c.id, "name": c.name, "is_private": c.is_private} for c in channels
        ]
    }


@router.post("/send-message")
async def send_message(body: SendMessageRequest, service: ServiceDep) -> dict:
    if not body.team_id or not body.channel_id or not body.message:
        raise ValidationError("Missing required fields")
    posted = await service.send_now(body.team_id, body.channel_id, body.message)
    return {"success": True, "message": "Message sent successfully", "ts": posted.ts}


@router.post("/schedule-message")
async def schedule_message(
    body: ScheduleMessageRequest, service: ServiceDep, transport: TransportDep
) -> dict:
    message_id = await service.schedule(
        body.team_id,
        body.channel_id,
        body.channel_name,
        body.message,
        body.scheduled_time,
    )

    # Early join surfaces access problems now rather than at send time
    assert body.team_id is not None and body.channel_id is not None
    join = await transport.join_channel(body.team_id, body.channel_id)
    if not join.joined:
        logger.info(
            "schedule_prejoin_failed",
            extra={
                "message.id": message_id,
                "slack.channel_id": body.channel_id,
                "slack.error": join.error,
            },
        )

    response: dict = {
        "success": True,
        "messageId": message_id,
        "message": "Message scheduled successfully",
    }
    if not join.joined or join.is_private:
        response["warning"] = PRIVATE_CHANNEL_WARNING
    return response


@router.get("/scheduled-messages/{team_id}")
async def list_scheduled_messages(
    team_id: str,
    service: ServiceDep,
    include_all: bool = Query(False, alias="all"),
) -> dict:
    """Pending messages, soonest first; ``?all=true`` returns full history."""
    if include_all:
        messages = await service.list_messages(team_id)
    else:
        messages = await service.list_pending(team_id)
    return {"messages": [m.to_dict() for m in messages]}


@router.delete("/scheduled-messages/{message_id}")
async def cancel_scheduled_message(
    message_id: int,
    service: ServiceDep,
    body: CancelMessageRequest | None = None,
    purge: bool = False,
) -> JSONResponse:
    """Cancel a pending message; ``?purge=true`` deletes the row instead."""
    if body is None or not body.team_id:
        raise ValidationError("Team ID is required")

    if purge:
        done = await service.delete(message_id, body.team_id)
    else:
        done = await service.cancel(message_id, body.team_id)

    if not done:
        return JSONResponse(
            status_code=404,
            content={
                "success": False,
                "error": "message_not_found",
                "message": "Message not found or already processed",
            },
        )
    return JSONResponse(
        content={"success": True, "message": "Message cancelled successfully"}
    )


@router.get("/db-status")
async def database_status(service: ServiceDep) -> dict:
    report = await service.status()
    return report.to_dict()
