"""Agent catalog and pricing endpoints."""

import asyncio
from typing import Any

from fastapi import APIRouter

from gateway.catalog.schema import AgentDescriptor, RemoteBackend
from gateway.dependencies import Collector, Snapshots
from gateway.logic.plans import PlanResolver

router = APIRouter()


def _agent_summary(agent: AgentDescriptor) -> dict[str, Any]:
    summary: dict[str, Any] = {
        "id": agent.id,
        "name": agent.name,
        "description": agent.description,
        "specialties": list(agent.specialties),
        "type": "remote" if agent.is_remote else "local",
        "tierRestriction": agent.tier_restriction,
    }
    if isinstance(agent.backend, RemoteBackend):
        summary["url"] = agent.backend.endpoint
    return summary


@router.get("/agents")
async def list_agents(snapshots: Snapshots) -> dict[str, Any]:
    """List every agent in catalog order."""
    snapshot = snapshots.current()
    return {
        "success": True,
        "agents": [_agent_summary(agent) for agent in snapshot.agents.values()],
    }


@router.get("/agents/health")
async def agents_health(snapshots: Snapshots, collector: Collector) -> dict[str, Any]:
    """Check every agent; remote agents are checked concurrently."""
    agents = list(snapshots.current().agents.values())
    results = await asyncio.gather(*(collector.check_health(agent) for agent in agents))
    return {"success": True, "agents": list(results)}


@router.get("/plans")
async def list_plans(snapshots: Snapshots) -> dict[str, Any]:
    """Compare every plan's price, features and limits."""
    return {"success": True, "plans": PlanResolver(snapshots.current()).pricing_comparison()}
