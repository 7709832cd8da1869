from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, StrictBool, Tag
from pydantic.alias_generators import to_camel


# --- Upstream record shapes ---


class RichTextRun(BaseModel):
    plain_text: str = ""


class SelectOption(BaseModel):
    name: str = ""


class UrlRef(BaseModel):
    url: str = ""


class FileRef(BaseModel):
    """A file attached to a record: hosted elsewhere (`external`) or stored upstream (`file`)."""

    type: str = "external"
    name: Optional[str] = None
    external: Optional[UrlRef] = None
    file: Optional[UrlRef] = None


class RelationRef(BaseModel):
    id: str


class IconRef(BaseModel):
    type: str
    emoji: Optional[str] = None
    external: Optional[UrlRef] = None
    file: Optional[UrlRef] = None


class TitleProperty(BaseModel):
    type: Literal["title"] = "title"
    title: List[RichTextRun] = Field(default_factory=list)


class RichTextProperty(BaseModel):
    type: Literal["rich_text"] = "rich_text"
    rich_text: List[RichTextRun] = Field(default_factory=list)


class UrlProperty(BaseModel):
    type: Literal["url"] = "url"
    url: Optional[str] = None


class SelectProperty(BaseModel):
    type: Literal["select"] = "select"
    select: Optional[SelectOption] = None


class StatusProperty(BaseModel):
    type: Literal["status"] = "status"
    status: Optional[SelectOption] = None


class MultiSelectProperty(BaseModel):
    type: Literal["multi_select"] = "multi_select"
    multi_select: List[SelectOption] = Field(default_factory=list)


class NumberProperty(BaseModel):
    type: Literal["number"] = "number"
    number: Optional[float] = None


class CheckboxProperty(BaseModel):
    type: Literal["checkbox"] = "checkbox"
    checkbox: bool = False


class FilesProperty(BaseModel):
    type: Literal["files"] = "files"
    files: List[FileRef] = Field(default_factory=list)


class RelationProperty(BaseModel):
    type: Literal["relation"] = "relation"
    relation: List[RelationRef] = Field(default_factory=list)


class EmailProperty(BaseModel):
    type: Literal["email"] = "email"
    email: Optional[str] = None


class PhoneProperty(BaseModel):
    type: Literal["phone_number"] = "phone_number"
    phone_number: Optional[str] = None


class UnsupportedProperty(BaseModel):
    """Any property kind not modelled above (dates, formulas, people, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str = "unsupported"


PROPERTY_KINDS = {
    "title": TitleProperty,
    "rich_text": RichTextProperty,
    "url": UrlProperty,
    "select": SelectProperty,
    "status": StatusProperty,
    "multi_select": MultiSelectProperty,
    "number": NumberProperty,
    "checkbox": CheckboxProperty,
    "files": FilesProperty,
    "relation": RelationProperty,
    "email": EmailProperty,
    "phone_number": PhoneProperty,
}


def _property_kind(value: Any) -> str:
    if isinstance(value, dict):
        kind = value.get("type")
    else:
        kind = getattr(value, "type", None)
    if kind in PROPERTY_KINDS and not isinstance(value, UnsupportedProperty):
        return kind
    return "unsupported"


PropertyValue = Annotated[
    Union[
        Annotated[TitleProperty, Tag("title")],
        Annotated[RichTextProperty, Tag("rich_text")],
        Annotated[UrlProperty, Tag("url")],
        Annotated[SelectProperty, Tag("select")],
        Annotated[StatusProperty, Tag("status")],
        Annotated[MultiSelectProperty, Tag("multi_select")],
        Annotated[NumberProperty, Tag("number")],
        Annotated[CheckboxProperty, Tag("checkbox")],
        Annotated[FilesProperty, Tag("files")],
        Annotated[RelationProperty, Tag("relation")],
        Annotated[EmailProperty, Tag("email")],
        Annotated[PhoneProperty, Tag("phone_number")],
        Annotated[UnsupportedProperty, Tag("unsupported")],
    ],
    Discriminator(_property_kind),
]


class RawRecord(BaseModel):
    """One page of an upstream database. Partial pages carry no properties."""

    model_config = ConfigDict(frozen=True)

    object: str = "page"
    id: str
    properties: Optional[Dict[str, PropertyValue]] = None
    icon: Optional[IconRef] = None
    cover: Optional[IconRef] = None
    last_edited_time: Optional[str] = None

    @property
    def is_full(self) -> bool:
        return self.properties is not None


class SelectColumnOptions(BaseModel):
    options: List[SelectOption] = Field(default_factory=list)


class DatabaseColumn(BaseModel):
    name: str = ""
    type: str = ""
    select: Optional[SelectColumnOptions] = None


class Database(BaseModel):
    id: str
    title: List[RichTextRun] = Field(default_factory=list)
    icon: Optional[IconRef] = None
    cover: Optional[IconRef] = None
    properties: Dict[str, DatabaseColumn] = Field(default_factory=dict)


class QueryPage(BaseModel):
    results: List[RawRecord]
    has_more: StrictBool = False
    next_cursor: Optional[str] = None


# --- Domain entities ---


class _Entity(BaseModel):
    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )


class LinkItem(_Entity):
    id: str
    title: str
    description: str = ""
    href: str
    lan_href: Optional[str] = None
    target: Optional[str] = None
    avatar: Optional[str] = None
    roles: List[str] = Field(default_factory=lambda: ["guest"])
    category: str
    subcategory: Optional[str] = None
    last_edited_time: int = 0


class Category(_Entity):
    id: str
    name: str
    parent_id: Optional[str] = None
    order: Optional[float] = None
    status: str = "active"


class ConfigEntry(_Entity):
    key: str
    value: str = ""


class DatabaseMetadata(_Entity):
    title: str
    icon: str = ""
    cover: str = ""


# --- Derived view models ---


class ChildGroup(_Entity):
    category: Category
    items: List[LinkItem] = Field(default_factory=list)


class CategoryGroup(_Entity):
    parent: Category
    items: List[LinkItem] = Field(default_factory=list)
    children: List[ChildGroup] = Field(default_factory=list)


class GroupedMenu(_Entity):
    parents: List[CategoryGroup] = Field(default_factory=list)
    unmatched_items: List[LinkItem] = Field(default_factory=list)


class FlatBucket(_Entity):
    name: str
    items: List[LinkItem] = Field(default_factory=list)


class ViewerMenu(_Entity):
    role: str
    mode: Literal["hierarchical", "flat"]
    groups: List[CategoryGroup] = Field(default_factory=list)
    unmatched_items: List[LinkItem] = Field(default_factory=list)
    buckets: List[FlatBucket] = Field(default_factory=list)
