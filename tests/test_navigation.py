from insight_hub.models import Page
from insight_hub.navigation import build_menu_tree, localized_title, serialize_menu


def _entry(page_id, name, parent=None):
    return {"id": page_id, "page_name": name, "parent_page_id": parent}


def test_build_menu_tree_nests_children_in_order():
    entries = [
        _entry(1, "Dashboard"),
        _entry(11, "Settings"),
        _entry(13, "Menu Management", parent=11),
        _entry(12, "Page Management", parent=11),
    ]
    tree = build_menu_tree(entries)
    assert [node["page_name"] for node in tree] == ["Dashboard", "Settings"]
    assert tree[0]["type"] == "link"
    assert tree[1]["type"] == "dropdown"
    assert [child["page_name"] for child in tree[1]["children"]] == ["Menu Management", "Page Management"]


def test_orphans_are_promoted():
    tree = build_menu_tree([_entry(5, "Page Management", parent=11), _entry(6, "Loop", parent=6)])
    assert [node["page_name"] for node in tree] == ["Page Management", "Loop"]
    assert all(node["children"] == [] for node in tree)


def test_localized_title_fallbacks():
    page = Page(page_name="Transcripts", page_path="/transcripts")
    assert localized_title(page, "en") == "Transcripts"
    assert localized_title(page, "km") == "Transcripts"

    page.page_name_kh = "ការបញ្ចូលពិន្ទុ"
    assert localized_title(page, "km") == "ការបញ្ចូលពិន្ទុ"

    page.page_title = "Student Transcripts"
    page.page_title_kh = "ប្រតិចារិក"
    assert localized_title(page, "en") == "Student Transcripts"
    assert localized_title(page, "km") == "ប្រតិចារិក"


def test_serialize_menu_positions():
    pages = [Page(id=3, page_name="B", page_path="/b"), Page(id=1, page_name="A", page_path="/a")]
    entries = serialize_menu(pages, "en")
    assert [(e["id"], e["position"], e["title"]) for e in entries] == [(3, 1, "B"), (1, 2, "A")]


def test_parent_loop_is_broken_at_first_entry():
    tree = build_menu_tree([
        _entry(1, "Dashboard"),
        _entry(2, "Students", parent=3),
        _entry(3, "Reports", parent=2),
    ])
    assert [node["page_name"] for node in tree] == ["Dashboard", "Students"]
    students = tree[1]
    assert students["type"] == "dropdown"
    assert [child["page_name"] for child in students["children"]] == ["Reports"]
    assert students["children"][0]["children"] == []
