"""
Process-wide service objects handed to routers through FastAPI Depends.

One orchestrator per worker process: its running metrics are per worker.
Tests swap it via `app.dependency_overrides[get_orchestrator]`.
"""
from functools import lru_cache

from app.services.collaborators import InMemoryUserProfileStore
from app.services.orchestrator import ActivityOrchestrator


@lru_cache(maxsize=1)
def get_orchestrator() -> ActivityOrchestrator:
    return ActivityOrchestrator(profile_store=InMemoryUserProfileStore())
