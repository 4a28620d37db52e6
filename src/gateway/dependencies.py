"""
FastAPI dependency injection.

Components are built once in create_app() and stored on app.state; these
dependencies hand them to route handlers.
"""

from typing import Annotated

from fastapi import Depends, Request

from gateway.catalog.store import SnapshotStore
from gateway.config import GatewaySettings
from gateway.logic.chat_service import ChatService, CommandService
from gateway.logic.config_inspector import ConfigInspector
from gateway.logic.response_collector import ResponseCollector


def get_app_settings(request: Request) -> GatewaySettings:
    """Get the settings the app was created with."""
    return request.app.state.settings


def get_snapshot_store(request: Request) -> SnapshotStore:
    """Get the configuration snapshot store."""
    return request.app.state.snapshots


def get_chat_service(request: Request) -> ChatService:
    """Get the chat service."""
    return request.app.state.chat_service


def get_command_service(request: Request) -> CommandService:
    """Get the admin command service."""
    return request.app.state.command_service


def get_config_inspector(request: Request) -> ConfigInspector:
    """Get the read-only configuration inspector."""
    return request.app.state.config_inspector


def get_response_collector(request: Request) -> ResponseCollector:
    """Get the agent response collector."""
    return request.app.state.collector


Settings = Annotated[GatewaySettings, Depends(get_app_settings)]
Snapshots = Annotated[SnapshotStore, Depends(get_snapshot_store)]
Chat = Annotated[ChatService, Depends(get_chat_service)]
Commands = Annotated[CommandService, Depends(get_command_service)]
Collector = Annotated[ResponseCollector, Depends(get_response_collector)]
Inspector = Annotated[ConfigInspector, Depends(get_config_inspector)]
