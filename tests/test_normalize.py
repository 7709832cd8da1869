from navboard.models import Category, ConfigEntry, LinkItem
from navboard.normalize import (
    NormalizeRules,
    category_order,
    collect_roles,
    database_metadata,
    normalize,
    normalize_config,
    normalize_link,
    parse_link_items,
    parse_site_config,
    parse_timestamp_millis,
)
from tests.builders import (
    category_page,
    database,
    link_page,
    multi_select,
    page,
    relation,
    rich_text,
    select,
    site_page,
    title,
    url,
)


def test_empty_roles_default_to_guest():
    item = normalize_link(link_page("p1", name="Docs", href="https://x", roles=()))
    assert isinstance(item, LinkItem)
    assert item.title == "Docs"
    assert item.href == "https://x"
    assert item.roles == ["guest"]


def test_missing_href_is_dropped_not_raised():
    assert normalize_link(link_page("p1", href=None)) is None
    assert normalize_link(link_page("p1", href="   ")) is None


def test_missing_title_is_dropped():
    record = page("p1", {"URL": url("https://x")})
    assert normalize_link(record) is None


def test_fields_are_trimmed_and_blank_optionals_absent():
    record = link_page(
        "p1",
        name="  Docs  ",
        href=" https://x ",
        roles=("admin", "admin", "guest"),
        Description=rich_text("  read me "),
        LanURL=url("  "),
        Target=select(" _blank "),
    )
    item = normalize_link(record)
    assert item.title == "Docs"
    assert item.href == "https://x"
    assert item.description == "read me"
    assert item.lan_href is None
    assert item.target == "_blank"
    assert item.roles == ["admin", "guest"]


def test_category_fallback_and_subcategory():
    item = normalize_link(link_page("p1"))
    assert item.category == "其他"
    assert item.subcategory is None

    rules = NormalizeRules(fallback_category="Other")
    item = normalize_link(link_page("p1", Subcategory=select("Scripts")), rules)
    assert item.category == "Other"
    assert item.subcategory == "Scripts"


def test_inactive_items_are_dropped_unless_filter_disabled():
    hidden = link_page("p1", Status=select("隐藏"))
    shown = link_page("p2", Status=select("显示"))
    active = link_page("p3", Status=select("Active"))
    no_status = link_page("p4")

    items = parse_link_items([hidden, shown, active, no_status])
    assert [i.id for i in items] == ["p2", "p3", "p4"]

    keep_all = NormalizeRules(filter_inactive=False)
    assert [i.id for i in parse_link_items([hidden, shown], keep_all)] == ["p1", "p2"]


def test_active_status_set_is_configurable():
    rules = NormalizeRules(active_statuses=["on"])
    assert normalize_link(link_page("p1", Status=select("on")), rules) is not None
    assert normalize_link(link_page("p1", Status=select("active")), rules) is None


def test_last_edited_time_is_epoch_millis():
    item = normalize_link(link_page("p1", edited="2024-01-01T00:00:00.000Z"))
    assert item.last_edited_time == 1704067200000

    assert parse_timestamp_millis("2024-01-01T00:00:00.250+00:00") == 1704067200250
    assert parse_timestamp_millis("not a date") == 0
    assert parse_timestamp_millis(None) == 0


def test_avatar_prefers_field_then_icon():
    with_icon = page(
        "p1",
        {"Name": title("A"), "URL": url("https://a")},
        icon={"type": "emoji", "emoji": "📚"},
    )
    assert normalize_link(with_icon).avatar == "📚"

    explicit = page(
        "p2",
        {"Name": title("A"), "URL": url("https://a"), "Avatar": url("https://a/logo.png")},
        icon={"type": "emoji", "emoji": "📚"},
    )
    assert normalize_link(explicit).avatar == "https://a/logo.png"

    assert normalize_link(link_page("p3")).avatar is None


def test_synonym_columns_are_understood():
    record = page(
        "p1",
        {
            "名称": title("工具"),
            "链接": url("https://tools"),
            "分类": select("Tools"),
            "角色": multi_select("admin"),
            "状态": select("显示"),
        },
    )
    item = normalize_link(record)
    assert item.title == "工具"
    assert item.href == "https://tools"
    assert item.category == "Tools"
    assert item.roles == ["admin"]


def test_partial_records_are_skipped():
    partial = page("p1", None)
    assert normalize_link(partial) is None
    assert normalize_config(partial) is None
    assert collect_roles([partial]) == []


def test_config_records_split_into_site_entries_and_categories():
    records = [
        site_page("s1", "siteName", " My Nav "),
        category_page("c1", "Tools", order=2),
        category_page("c2", "Scripts", parent="c1", order="1"),
        page("x1", {"Name": title("Misc"), "Type": select("note")}),
    ]
    site_config, categories = parse_site_config(records)

    assert site_config == {"siteName": "My Nav"}
    assert categories == [
        Category(id="c1", name="Tools", order=2, status="active"),
        Category(id="c2", name="Scripts", parent_id="c1", order=1, status="active"),
    ]


def test_category_order_accepts_numeric_text():
    record = page(
        "c1",
        {"Name": title("Tools"), "Type": select("Category"), "Order": rich_text("3")},
    )
    category = normalize_config(record)
    assert category.order == 3
    assert category.parent_id is None


def test_category_status_is_kept_for_tree_filtering():
    category = normalize_config(category_page("c1", "Old", state="archived"))
    assert category.status == "archived"


def test_normalize_dispatches_on_source():
    assert isinstance(normalize(link_page("p1")), LinkItem)
    assert isinstance(normalize(site_page("s1", "k", "v"), source="config"), ConfigEntry)
    assert normalize(link_page("p1"), source="config") is None


def test_collect_roles_is_distinct_in_first_seen_order():
    records = [
        link_page("p1", roles=("admin", "guest")),
        link_page("p2", roles=("family", "admin")),
        link_page("p3", href=None, roles=("hidden",)),
    ]
    assert collect_roles(records) == ["admin", "guest", "family", "hidden"]


def test_database_metadata_and_category_order():
    db = database(name="My Links", category_options=("B", "A"))
    meta = database_metadata(db)
    assert meta.title == "My Links"
    assert meta.icon == "🧭"
    assert meta.cover == "https://img.example/cover.png"
    assert category_order(db) == ["B", "A"]

    assert database_metadata(database(name="")).title == "导航页"


def test_relation_typed_roles_and_category_fall_back_to_defaults():
    record = page(
        "p1",
        {
            "Name": title("Docs"),
            "URL": url("https://x"),
            "Roles": relation("abcd-1234"),
            "Category": relation("ffff-0000"),
        },
    )
    item = normalize_link(record)
    assert item.roles == ["guest"]
    assert item.category == "其他"
    assert collect_roles([record]) == []
