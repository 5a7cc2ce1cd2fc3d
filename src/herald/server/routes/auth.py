"""Slack OAuth routes: start the flow and complete the code exchange."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from herald.server.deps import ComponentsDep, CredentialsDep, OAuthDep

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/slack")
async def start_oauth(components: ComponentsDep, oauth: OAuthDep) -> dict[str, str]:
    """Return the Slack authorization URL for the frontend to redirect to."""
    components.config.slack.validate_oauth()
    return {"authUrl": oauth.build_authorization_url()}


@router.get("/slack/callback")
async def oauth_callback(
    credentials: CredentialsDep,
    code: str | None = None,
    error: str | None = None,
) -> JSONResponse:
    """Exchange the authorization code Slack redirected back with."""
    if error:
        logger.warning("oauth_denied", extra={"slack.error": error})
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "oauth_denied",
                "message": "OAuth authorization failed",
                "details": error,
            },
        )
    if not code:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "validation_error",
                "message": "Authorization code not provided",
            },
        )

    credential = await credentials.exchange_code(code)
    return JSONResponse(
        content={
            "success": True,
            "team": {"id": credential.team_id, "name": credential.team_name},
            "message": "Successfully connected to Slack",
        }
    )
