"""Builders for Notion-shaped payloads and a fake paginated client."""

import threading
import time
from typing import Dict, List, Optional

from navboard.errors import FetchError
from navboard.models import Database, QueryPage, RawRecord

LINKS_DB = "0f1e2d3c-4b5a-6978-8796-a5b4c3d2e1f0"
CONFIG_DB = "aaaabbbb-cccc-dddd-eeee-ffff00001111"


def title(text: str) -> dict:
    return {"type": "title", "title": [{"plain_text": text}]}


def rich_text(*runs: str) -> dict:
    return {"type": "rich_text", "rich_text": [{"plain_text": r} for r in runs]}


def url(value: Optional[str]) -> dict:
    return {"type": "url", "url": value}


def select(name: Optional[str]) -> dict:
    return {"type": "select", "select": {"name": name} if name is not None else None}


def status(name: str) -> dict:
    return {"type": "status", "status": {"name": name}}


def multi_select(*names: str) -> dict:
    return {"type": "multi_select", "multi_select": [{"name": n} for n in names]}


def number(value) -> dict:
    return {"type": "number", "number": value}


def checkbox(value: bool) -> dict:
    return {"type": "checkbox", "checkbox": value}


def relation(*ids: str) -> dict:
    return {"type": "relation", "relation": [{"id": i} for i in ids]}


def external_file(link: str) -> dict:
    return {"type": "external", "name": "f", "external": {"url": link}}


def stored_file(link: str) -> dict:
    return {"type": "file", "name": "f", "file": {"url": link, "expiry_time": "2030-01-01T00:00:00.000Z"}}


def files(*refs: dict) -> dict:
    return {"type": "files", "files": list(refs)}


def page(
    page_id: str,
    properties: Optional[dict] = None,
    icon: Optional[dict] = None,
    last_edited_time: Optional[str] = "2024-01-01T00:00:00.000Z",
) -> RawRecord:
    payload = {"object": "page", "id": page_id, "last_edited_time": last_edited_time}
    if properties is not None:
        payload["properties"] = properties
    if icon is not None:
        payload["icon"] = icon
    return RawRecord.model_validate(payload)


def link_page(
    page_id: str,
    name: str = "Docs",
    href: Optional[str] = "https://example.com",
    category: Optional[str] = None,
    roles=(),
    edited: str = "2024-01-01T00:00:00.000Z",
    **extra: dict,
) -> RawRecord:
    props = {"Name": title(name), "Roles": multi_select(*roles)}
    if href is not None:
        props["URL"] = url(href)
    if category is not None:
        props["Category"] = select(category)
    props.update(extra)
    return page(page_id, props, last_edited_time=edited)


def category_page(
    page_id: str,
    name: str,
    parent: Optional[str] = None,
    order=None,
    state: Optional[str] = None,
) -> RawRecord:
    props = {
        "Name": title(name),
        "Type": select("category"),
        "Parent": relation(*([parent] if parent else [])),
        "Order": number(order),
    }
    if state is not None:
        props["Status"] = select(state)
    return page(page_id, props)


def site_page(page_id: str, key: str, value: str) -> RawRecord:
    return page(
        page_id,
        {"Name": title(key), "Type": select("site"), "Value": rich_text(value)},
    )


def database(
    db_id: str = LINKS_DB,
    name: str = "My Links",
    category_options=("Tools", "Docs"),
) -> Database:
    return Database.model_validate(
        {
            "id": db_id,
            "title": [{"plain_text": name}] if name else [],
            "icon": {"type": "emoji", "emoji": "🧭"},
            "cover": {"type": "external", "external": {"url": "https://img.example/cover.png"}},
            "properties": {
                "Category": {
                    "name": "Category",
                    "type": "select",
                    "select": {"options": [{"name": n} for n in category_options]},
                },
                "Name": {"name": "Name", "type": "title"},
            },
        }
    )


class FakeNotion:
    """
    In-memory stand-in for NotionClient. Serves each source in pages of
    `page_size` records, regardless of the page size the caller asks for.
    """

    def __init__(
        self,
        sources: Dict[str, List[RawRecord]],
        page_size: int = 100,
        databases: Optional[Dict[str, Database]] = None,
        fail_on_call: Optional[int] = None,
        delay: float = 0.0,
    ):
        self.sources = sources
        self.page_size = page_size
        self.databases = databases or {}
        self.fail_on_call = fail_on_call
        self.delay = delay
        self.calls = 0
        self.cursors: List[Optional[str]] = []
        self._lock = threading.Lock()

    def query_database(self, database_id, start_cursor=None, page_size=100):
        with self._lock:
            self.calls += 1
            call = self.calls
            self.cursors.append(start_cursor)
        if self.delay:
            time.sleep(self.delay)
        if self.fail_on_call is not None and call >= self.fail_on_call:
            raise FetchError("Upstream unreachable", source_id=database_id)
        if database_id not in self.sources:
            raise FetchError("Unknown or invalid source id (404)", source_id=database_id, status=404)

        records = self.sources[database_id]
        start = int(start_cursor) if start_cursor else 0
        end = start + self.page_size
        has_more = end < len(records)
        return QueryPage(
            results=records[start:end],
            has_more=has_more,
            next_cursor=str(end) if has_more else None,
        )

    def retrieve_database(self, database_id):
        if database_id not in self.databases:
            return database(database_id)
        return self.databases[database_id]

    def close(self):
        pass
