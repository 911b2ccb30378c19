from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from research_agent.api.deps import get_providers
from research_agent.api.routes import research
from research_agent.config import settings
from research_agent.models.schemas import HealthResponse
from research_agent.services.job_queue import Scheduler
from research_agent.services.pipeline import ResearchPipeline
from research_agent.services.result_store import get_store
from research_agent.tools.search_provider import (
    SearchProvider,
    build_default_providers,
    check_health,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: reuse collaborators already placed on app.state.
    store = getattr(app.state, "store", None)
    if store is None:
        store = get_store()
    providers = getattr(app.state, "providers", None)
    if providers is None:
        providers = build_default_providers()
    await store.init_schema()
    scheduler = Scheduler(ResearchPipeline(providers, store), store)
    app.state.store = store
    app.state.providers = providers
    app.state.scheduler = scheduler
    scheduler.start()
    yield
    # Shutdown
    await scheduler.stop()
    await store.close()


app = FastAPI(
    title="Research Agent",
    description="Queued topic research over encyclopedia and news sources",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(research.router)


@app.get("/api/health", response_model=HealthResponse)
async def health(providers: list[SearchProvider] = Depends(get_providers)):
    provider_health = await check_health(providers)
    status = "ok" if any(provider_health.values()) else "degraded"
    return HealthResponse(status=status, service="research-agent", providers=provider_health)
