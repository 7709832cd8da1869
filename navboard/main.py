import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import (
    Settings,
    check_source_id,
    environment_info,
    get_settings,
    validate_environment,
)
from .errors import ConfigError, FetchError
from .grouping import group_for_viewer
from .normalize import (
    NormalizeRules,
    category_order,
    collect_roles,
    database_metadata,
    parse_link_items,
    parse_site_config,
)
from .notion import NotionClient
from .pagination import fetch_all, fetch_many, gather_or_cancel, with_timeout

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    validation = validate_environment(get_settings())
    for error in validation.errors:
        logger.error("Configuration error: %s", error)
    for warning in validation.warnings:
        logger.warning("Configuration warning: %s", warning)
    yield


app = FastAPI(title="Navboard", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class AuthIn(BaseModel):
    password: Optional[str] = None


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(FetchError)
async def fetch_error_handler(request: Request, exc: FetchError):
    logger.error(
        "Error fetching from Notion (%s %s, source=%s): %s",
        request.method,
        request.url.path,
        exc.source_id,
        exc,
    )
    return JSONResponse(
        status_code=500, content={"error": "Failed to fetch data from Notion"}
    )


def get_client(settings: Settings = Depends(get_settings)):
    client = NotionClient.from_settings(settings)
    try:
        yield client
    finally:
        client.close()


def get_rules(settings: Settings = Depends(get_settings)) -> NormalizeRules:
    return NormalizeRules.from_settings(settings)


def _resolve_source(settings: Settings, *candidates: Optional[str]) -> str:
    for candidate in candidates:
        if candidate:
            return check_source_id(candidate)
    return check_source_id(settings.default_source_id)


async def _retrieve_database(client: NotionClient, source_id: str):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, client.retrieve_database, source_id)


@app.get("/menu")
async def get_menu(
    source_id: Optional[str] = Query(None, alias="sourceId"),
    database_id: Optional[str] = Query(None, alias="databaseId"),
    page_id: Optional[str] = Query(None, alias="pageId"),
    settings: Settings = Depends(get_settings),
    rules: NormalizeRules = Depends(get_rules),
    client: NotionClient = Depends(get_client),
):
    source = _resolve_source(settings, source_id, database_id, page_id)

    database, records = await with_timeout(
        gather_or_cancel(_retrieve_database(client, source), fetch_all(client, source)),
        settings.fetch_timeout,
    )

    return {
        "menuItems": parse_link_items(records, rules),
        "databaseMetadata": database_metadata(database),
        "categoryOrder": category_order(database),
    }


@app.get("/config")
async def get_config(
    settings: Settings = Depends(get_settings),
    rules: NormalizeRules = Depends(get_rules),
    client: NotionClient = Depends(get_client),
):
    source = check_source_id(settings.config_database_id, "Config database ID")
    records = await with_timeout(fetch_all(client, source), settings.fetch_timeout)
    site_config, categories = parse_site_config(records, rules)
    return {"siteConfig": site_config, "categories": categories}


@app.get("/roles")
async def get_roles(
    settings: Settings = Depends(get_settings),
    client: NotionClient = Depends(get_client),
):
    source = check_source_id(settings.default_source_id)
    records = await with_timeout(fetch_all(client, source), settings.fetch_timeout)
    roles = collect_roles(records)
    return {"success": True, "roles": roles, "totalCount": len(roles)}


@app.post("/auth")
async def authenticate(
    payload: AuthIn,
    settings: Settings = Depends(get_settings),
    client: NotionClient = Depends(get_client),
):
    # plain-text role lookup: the "password" is one of the declared role names
    if not payload.password:
        return JSONResponse(status_code=400, content={"error": "Password is required"})

    source = check_source_id(settings.default_source_id)
    records = await with_timeout(fetch_all(client, source), settings.fetch_timeout)

    if payload.password in collect_roles(records):
        return {
            "success": True,
            "role": payload.password,
            "message": "Authentication successful",
        }
    return JSONResponse(status_code=401, content={"error": "Invalid password"})


@app.get("/env-check")
def env_check(settings: Settings = Depends(get_settings)):
    validation = validate_environment(settings)
    return {
        "success": True,
        "validation": {
            "isValid": validation.is_valid,
            "errors": validation.errors,
            "warnings": validation.warnings,
        },
        "environment": environment_info(settings),
        "currentLinksDatabaseId": settings.default_source_id,
        "currentConfigDatabaseId": settings.config_database_id,
        "notionConfig": {"token": "set" if settings.notion_token else "not set"},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/navigation")
async def get_navigation(
    role: str = "guest",
    source_id: Optional[str] = Query(None, alias="sourceId"),
    settings: Settings = Depends(get_settings),
    rules: NormalizeRules = Depends(get_rules),
    client: NotionClient = Depends(get_client),
):
    """Role-filtered, grouped navigation built from the link and config sources."""
    source = _resolve_source(settings, source_id)
    config_source = None
    if settings.config_database_id:
        config_source = check_source_id(settings.config_database_id, "Config database ID")

    sources = [source] + ([config_source] if config_source else [])
    database, fetched = await with_timeout(
        gather_or_cancel(_retrieve_database(client, source), fetch_many(client, sources)),
        settings.fetch_timeout,
    )

    site_config, categories = {}, []
    if config_source:
        site_config, categories = parse_site_config(fetched[config_source], rules)

    menu = group_for_viewer(
        parse_link_items(fetched[source], rules),
        role,
        category_order(database),
        categories,
    )
    return {
        "databaseMetadata": database_metadata(database),
        "siteConfig": site_config,
        "navigation": menu,
    }
