"""
Admin command and configuration inspection endpoints.

Handlers are plain functions so FastAPI runs them in its threadpool; the
document store serializes writes with per-path locks.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Header, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from gateway.config import GatewaySettings
from gateway.dependencies import Commands, Inspector, Settings
from gateway.logic.exceptions import ForbiddenError

logger = logging.getLogger(__name__)
router = APIRouter()


class CommandRequest(BaseModel):
    """Request body for an admin command."""

    command: str = Field(..., min_length=1, description="Natural-language command")
    plan: str | None = Field(None, description="Caller's plan; must be the admin plan")


def _check_admin_token(settings: GatewaySettings, token: str | None) -> None:
    if settings.admin_token and token != settings.admin_token:
        logger.warning("🚫 Admin request rejected: bad admin token")
        raise ForbiddenError("Invalid admin token")


@router.post("/command")
def run_command(
    body: CommandRequest,
    settings: Settings,
    commands: Commands,
    x_admin_token: Annotated[str | None, Header()] = None,
):
    """
    Parse and apply an admin command.

    Returns:
        {success: true, message, changes} or, with status 400,
        {success: false, error}.

    Raises:
        ForbiddenError: If the caller is not on the admin plan or the admin
            token does not match.
    """
    if (body.plan or "").strip().lower() != settings.admin_plan:
        logger.warning("🚫 Admin command rejected for plan %r", body.plan)
        raise ForbiddenError("Admin access required")
    _check_admin_token(settings, x_admin_token)

    result = commands.execute(body.command)
    if not result["success"]:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=result)
    return result


@router.get("/commands")
def list_commands(commands: Commands) -> dict[str, Any]:
    """List the supported admin commands, grouped by category."""
    return {"success": True, "commands": commands.interpreter.available_commands()}


@router.get("/config/validate")
def validate_config(
    settings: Settings,
    inspector: Inspector,
    path: str | None = None,
    x_admin_token: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    """
    Validate one configuration document and the catalog as a whole.

    Returns:
        {success: true, valid, message, path}
    """
    _check_admin_token(settings, x_admin_token)
    return {"success": True, **inspector.validate(path)}


@router.get("/config/summary")
def config_summary(
    settings: Settings,
    inspector: Inspector,
    x_admin_token: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    """Summarize agents, features and models per tier document."""
    _check_admin_token(settings, x_admin_token)
    return {"success": True, "tiers": inspector.summary()}
