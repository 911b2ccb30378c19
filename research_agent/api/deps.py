from __future__ import annotations

from fastapi import Request

from research_agent.services.job_queue import Scheduler
from research_agent.tools.search_provider import SearchProvider


def get_scheduler(request: Request) -> Scheduler:
    """Scheduler built by the app lifespan."""
    return request.app.state.scheduler


def get_providers(request: Request) -> list[SearchProvider]:
    return request.app.state.providers
