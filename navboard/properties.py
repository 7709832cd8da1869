import math
from typing import Callable, Dict, List, Mapping, Optional

from .models import (
    PROPERTY_KINDS,
    CheckboxProperty,
    EmailProperty,
    FilesProperty,
    IconRef,
    MultiSelectProperty,
    NumberProperty,
    PhoneProperty,
    PropertyValue,
    RelationProperty,
    RichTextProperty,
    RichTextRun,
    SelectProperty,
    StatusProperty,
    TitleProperty,
    UnsupportedProperty,
    UrlProperty,
)

# Alternate column names accepted for each logical field, keyed by the
# upper-cased logical name. The logical name itself is always tried first.
PROPERTY_SYNONYMS: Dict[str, List[str]] = {
    "TITLE": ["名称", "标题", "name"],
    "DESCRIPTION": ["描述", "简介", "desc"],
    "URL": ["链接", "网址", "link", "href"],
    "LANURL": ["内网链接", "lan url", "lan_url", "lanhref"],
    "AVATAR": ["图标", "头像", "icon"],
    "CATEGORY": ["分类", "类别"],
    "SUBCATEGORY": ["子分类", "sub category", "sub_category"],
    "ROLES": ["角色", "role"],
    "TARGET": ["打开方式"],
    "STATUS": ["状态"],
    "TYPE": ["类型"],
    "NAME": ["名称", "key"],
    "VALUE": ["值"],
    "ORDER": ["排序", "顺序", "sort"],
    "PARENT": ["父分类", "上级分类", "parent category"],
}

Properties = Mapping[str, PropertyValue]


def property_names_for(logical_name: str) -> List[str]:
    return [logical_name, *PROPERTY_SYNONYMS.get(logical_name.upper(), [])]


def field_index(properties: Properties) -> Dict[str, str]:
    """Lower-cased field name -> actual field name."""
    return {key.lower(): key for key in properties}


def resolve(
    properties: Properties,
    logical_name: str,
    index: Optional[Dict[str, str]] = None,
) -> Optional[PropertyValue]:
    """
    Find the field backing `logical_name`:
    - field names are matched case-insensitively
    - the logical name wins over its synonyms, synonyms are tried in table order
    - returns None when nothing matches
    """
    if index is None:
        index = field_index(properties)
    for name in property_names_for(logical_name):
        match = index.get(name.lower())
        if match is not None:
            return properties[match]
    return None


def plain_text(runs: List[RichTextRun]) -> str:
    return "".join(run.plain_text for run in runs)


def _format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _first_file_url(prop: FilesProperty) -> str:
    if not prop.files:
        return ""
    first = prop.files[0]
    if first.external and first.external.url:
        return first.external.url
    if first.file and first.file.url:
        return first.file.url
    return ""


_STRING_EXTRACTORS: Dict[type, Callable[..., str]] = {
    TitleProperty: lambda p: plain_text(p.title),
    RichTextProperty: lambda p: plain_text(p.rich_text),
    UrlProperty: lambda p: p.url or "",
    SelectProperty: lambda p: p.select.name if p.select else "",
    StatusProperty: lambda p: p.status.name if p.status else "",
    MultiSelectProperty: lambda p: ",".join(o.name for o in p.multi_select),
    NumberProperty: lambda p: "" if p.number is None else _format_number(p.number),
    CheckboxProperty: lambda p: "true" if p.checkbox else "false",
    FilesProperty: _first_file_url,
    RelationProperty: lambda p: "",  # ids only through extract_relation_ids
    EmailProperty: lambda p: p.email or "",
    PhoneProperty: lambda p: p.phone_number or "",
    UnsupportedProperty: lambda p: "",
}

_uncovered = (set(PROPERTY_KINDS.values()) | {UnsupportedProperty}) - set(_STRING_EXTRACTORS)
if _uncovered:
    raise TypeError(f"No string extractor for {sorted(c.__name__ for c in _uncovered)}")


def extract_string(prop: Optional[PropertyValue]) -> str:
    if prop is None:
        return ""
    return _STRING_EXTRACTORS[type(prop)](prop)


def extract_multi_value(prop: Optional[PropertyValue]) -> List[str]:
    if prop is None:
        return []
    if isinstance(prop, MultiSelectProperty):
        values = [option.name.strip() for option in prop.multi_select]
    elif isinstance(prop, SelectProperty):
        values = [prop.select.name.strip()] if prop.select else []
    else:
        values = [part.strip() for part in extract_string(prop).split(",")]
    return [v for v in values if v]


def extract_number(prop: Optional[PropertyValue]) -> Optional[float]:
    if prop is None:
        return None
    if isinstance(prop, NumberProperty) and prop.number is not None:
        value = prop.number
    else:
        raw = extract_string(prop).strip()
        if not raw:
            return None
        try:
            value = float(raw)
        except ValueError:
            return None
    return value if math.isfinite(value) else None


def extract_relation_ids(prop: Optional[PropertyValue]) -> List[str]:
    if not isinstance(prop, RelationProperty):
        return []
    return [ref.id for ref in prop.relation]


def get_string(properties: Properties, logical_name: str) -> str:
    return extract_string(resolve(properties, logical_name))


def get_multi_value(properties: Properties, logical_name: str) -> List[str]:
    return extract_multi_value(resolve(properties, logical_name))


def get_number(properties: Properties, logical_name: str) -> Optional[float]:
    return extract_number(resolve(properties, logical_name))


def get_relation_ids(properties: Properties, logical_name: str) -> List[str]:
    return extract_relation_ids(resolve(properties, logical_name))


def page_title(properties: Properties) -> str:
    """Text of the record's title-kind field, whatever it is called."""
    for prop in properties.values():
        if isinstance(prop, TitleProperty):
            return plain_text(prop.title)
    return ""


def icon_value(icon: Optional[IconRef]) -> str:
    """Emoji text or hosted image url of an icon."""
    if icon is None:
        return ""
    if icon.type == "emoji":
        return icon.emoji or ""
    if icon.type == "external" and icon.external:
        return icon.external.url
    if icon.type == "file" and icon.file:
        return icon.file.url
    return ""


def cover_url(cover: Optional[IconRef]) -> str:
    if cover is None:
        return ""
    if cover.external:
        return cover.external.url
    if cover.file:
        return cover.file.url
    return ""
