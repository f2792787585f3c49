# gta_watch/deps.py
"""
Construction of the long-lived service objects.

build_services() runs once at startup and the result hangs off app.state;
routers pull individual services through the get_* providers, which tests
replace via app.dependency_overrides.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request
from openai import AsyncOpenAI
from sqlalchemy.engine import Engine

from . import config
from .db import Base, create_db_engine, create_session_factory
from .services.broadcast import Broadcaster
from .services.geocoding import GeocodingClient
from .services.guidance import GuidanceService
from .services.incident_store import IncidentStore

log = logging.getLogger(__name__)


@dataclass
class Services:
    engine: Engine
    http: httpx.AsyncClient
    store: IncidentStore
    geocoder: GeocodingClient
    guidance: GuidanceService

    async def aclose(self):
        await self.http.aclose()
        self.engine.dispose()


def build_services(
    db_url: Optional[str] = None,
    http: Optional[httpx.AsyncClient] = None,
) -> Services:
    engine = create_db_engine(db_url or config.SUPABASE_DB_URL)
    Base.metadata.create_all(bind=engine)

    http = http or httpx.AsyncClient(timeout=config.HTTP_TIMEOUT_SECONDS)

    store = IncidentStore(create_session_factory(engine), Broadcaster())
    geocoder = GeocodingClient(http, config.GEOAPIFY_KEY, config.GEOAPIFY_BASE_URL)

    llm = None
    if config.OPENROUTER_API_KEY:
        llm = AsyncOpenAI(
            api_key=config.OPENROUTER_API_KEY,
            base_url=config.OPENROUTER_BASE_URL,
            http_client=http,
            max_retries=0,
            default_headers={
                "HTTP-Referer": config.APP_REFERER,
                "X-Title": config.APP_TITLE,
            },
        )
    guidance = GuidanceService(llm, config.GUIDANCE_MODEL)

    log.info("Services ready (db=%s)", engine.url.render_as_string(hide_password=True))
    return Services(engine=engine, http=http, store=store, geocoder=geocoder, guidance=guidance)


def get_store(request: Request) -> IncidentStore:
    return request.app.state.services.store


def get_geocoder(request: Request) -> GeocodingClient:
    return request.app.state.services.geocoder


def get_guidance(request: Request) -> GuidanceService:
    return request.app.state.services.guidance
