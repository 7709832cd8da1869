import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from .config import DEFAULT_ACTIVE_STATUSES, DEFAULT_FALLBACK_CATEGORY, Settings
from .models import Category, ConfigEntry, Database, DatabaseMetadata, LinkItem, RawRecord
from .properties import (
    cover_url,
    extract_multi_value,
    extract_number,
    extract_relation_ids,
    extract_string,
    field_index,
    icon_value,
    page_title,
    plain_text,
    property_names_for,
    resolve,
)

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DEFAULT_DATABASE_TITLE = "导航页"


class NormalizeRules(BaseModel):
    """Locale-specific business rules applied while normalizing records."""

    fallback_category: str = DEFAULT_FALLBACK_CATEGORY
    active_statuses: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ACTIVE_STATUSES)
    )
    # Link records whose status is outside active_statuses are dropped when set.
    filter_inactive: bool = True
    default_role: str = "guest"
    default_status: str = "active"

    @classmethod
    def from_settings(cls, settings: Settings) -> "NormalizeRules":
        return cls(
            fallback_category=settings.fallback_category,
            active_statuses=settings.active_statuses,
            filter_inactive=settings.filter_inactive,
        )


DEFAULT_RULES = NormalizeRules()


def parse_timestamp_millis(raw: Optional[str]) -> int:
    """ISO-8601 timestamp to epoch millis; 0 when missing or unparseable."""
    if not raw:
        return 0
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return (parsed - EPOCH) // timedelta(milliseconds=1)


class _Fields:
    """Trimmed string access to one record's properties through the resolver."""

    def __init__(self, record: RawRecord):
        self.properties = record.properties or {}
        self.index = field_index(self.properties)

    def get(self, logical_name: str) -> str:
        return extract_string(resolve(self.properties, logical_name, self.index)).strip()

    def multi(self, logical_name: str) -> List[str]:
        return extract_multi_value(resolve(self.properties, logical_name, self.index))

    def number(self, logical_name: str) -> Optional[float]:
        return extract_number(resolve(self.properties, logical_name, self.index))

    def relation_ids(self, logical_name: str) -> List[str]:
        return extract_relation_ids(resolve(self.properties, logical_name, self.index))


def normalize_link(record: RawRecord, rules: NormalizeRules = DEFAULT_RULES) -> Optional[LinkItem]:
    if not record.is_full:
        logger.debug("Skipping partial record %s", record.id)
        return None

    fields = _Fields(record)
    status = fields.get("status") or rules.default_status
    if rules.filter_inactive and status not in rules.active_statuses:
        logger.debug("Skipping record %s - status is not active: %s", record.id, status)
        return None

    title = fields.get("title") or page_title(fields.properties).strip()
    href = fields.get("url")
    if not title or not href:
        logger.info("Skipping record %s - missing title/href", record.id)
        return None

    roles = list(dict.fromkeys(fields.multi("roles"))) or [rules.default_role]

    return LinkItem(
        id=record.id,
        title=title,
        description=fields.get("description"),
        href=href,
        lan_href=fields.get("lanurl") or None,
        target=fields.get("target") or None,
        avatar=fields.get("avatar") or icon_value(record.icon).strip() or None,
        roles=roles,
        category=fields.get("category") or rules.fallback_category,
        subcategory=fields.get("subcategory") or None,
        last_edited_time=parse_timestamp_millis(record.last_edited_time),
    )


def normalize_config(
    record: RawRecord, rules: NormalizeRules = DEFAULT_RULES
) -> Optional[Union[Category, ConfigEntry]]:
    """Config sources mix site settings and categories, told apart by the `type` field."""
    if not record.is_full:
        return None

    fields = _Fields(record)
    kind = fields.get("type").lower()
    title = page_title(fields.properties).strip()

    if kind == "site":
        key = fields.get("name") or title
        if not key:
            logger.info("Skipping site config record %s - no key", record.id)
            return None
        return ConfigEntry(key=key, value=fields.get("value"))

    if kind == "category":
        name = fields.get("name") or title
        if not name:
            logger.info("Skipping category record %s - no name", record.id)
            return None
        parent_ids = fields.relation_ids("parent")
        return Category(
            id=record.id,
            name=name,
            parent_id=parent_ids[0] if parent_ids else None,
            order=fields.number("order"),
            status=fields.get("status") or rules.default_status,
        )

    logger.debug("Skipping config record %s with type %r", record.id, kind)
    return None


def normalize(
    record: RawRecord,
    source: Literal["links", "config"] = "links",
    rules: NormalizeRules = DEFAULT_RULES,
) -> Optional[Union[LinkItem, Category, ConfigEntry]]:
    if source == "config":
        return normalize_config(record, rules)
    return normalize_link(record, rules)


def parse_link_items(
    records: Iterable[RawRecord], rules: NormalizeRules = DEFAULT_RULES
) -> List[LinkItem]:
    items = []
    for record in records:
        item = normalize_link(record, rules)
        if item is not None:
            items.append(item)
    return items


def parse_site_config(
    records: Iterable[RawRecord], rules: NormalizeRules = DEFAULT_RULES
) -> Tuple[Dict[str, str], List[Category]]:
    site_config: Dict[str, str] = {}
    categories: List[Category] = []
    for record in records:
        entity = normalize_config(record, rules)
        if isinstance(entity, ConfigEntry):
            site_config[entity.key] = entity.value
        elif isinstance(entity, Category):
            categories.append(entity)
    return site_config, categories


def collect_roles(records: Iterable[RawRecord]) -> List[str]:
    """Distinct role strings declared across all full records, in first-seen order."""
    roles: Dict[str, None] = {}
    for record in records:
        if not record.is_full:
            continue
        for role in _Fields(record).multi("roles"):
            roles.setdefault(role, None)
    return list(roles)


def database_metadata(database: Database) -> DatabaseMetadata:
    return DatabaseMetadata(
        title=plain_text(database.title) or DEFAULT_DATABASE_TITLE,
        icon=icon_value(database.icon),
        cover=cover_url(database.cover),
    )


def category_order(database: Database) -> List[str]:
    """Option order of the database's select-type category column, if it has one."""
    candidates = {name.lower() for name in property_names_for("category")}
    for key, column in database.properties.items():
        name = column.name or key
        if name.lower() in candidates and column.type == "select" and column.select:
            return [option.name for option in column.select.options]
    return []
