"""
FastAPI dependency injection providers.

Exposes the collector components built by the application lifespan
(stored on ``app.state``) to route handlers via Depends().

CHANGELOG:
- 2026-10-18: Initial creation (STORY-013)
"""

from typing import Annotated

from fastapi import Depends, Request

from collector.src.cache import ReadCache
from collector.src.config import CollectorSettings
from collector.src.pipeline import Collector
from collector.src.store import SampleStore


def get_settings(request: Request) -> CollectorSettings:
    """Return the settings the application was started with."""
    return request.app.state.settings


def get_store(request: Request) -> SampleStore:
    """Return the open sample store."""
    return request.app.state.store


def get_collector(request: Request) -> Collector:
    """Return the collection pipeline."""
    return request.app.state.collector


def get_cache(request: Request) -> ReadCache:
    """Return the read cache."""
    return request.app.state.cache


async def require_admin(request: Request) -> None:
    """Reject the request unless it carries the admin bearer token."""
    await request.app.state.auth.verify(request)


SettingsDep = Annotated[CollectorSettings, Depends(get_settings)]
StoreDep = Annotated[SampleStore, Depends(get_store)]
CollectorDep = Annotated[Collector, Depends(get_collector)]
CacheDep = Annotated[ReadCache, Depends(get_cache)]
