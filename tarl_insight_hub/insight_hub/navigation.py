# -*- coding: utf-8 -*-
"""
Navigation utilities for building the sidebar menu from the resolved page order.
"""

from typing import Any, Dict, List, Optional

from flask_babel import get_locale

from insight_hub.models import Page


def current_language() -> str:
    locale = get_locale()
    return locale.language if locale is not None else "en"


def localized_title(page: Page, language: Optional[str] = None) -> str:
    language = language or current_language()
    if language == "km":
        return page.page_title_kh or page.page_name_kh or page.page_title or page.page_name
    return page.page_title or page.page_name


def menu_entry(page: Page, position: int, language: Optional[str] = None) -> Dict[str, Any]:
    data = page.to_dict()
    data["title"] = localized_title(page, language)
    data["position"] = position
    return data


def serialize_menu(pages: List[Page], language: Optional[str] = None) -> List[Dict[str, Any]]:
    language = language or current_language()
    return [menu_entry(page, index, language) for index, page in enumerate(pages, start=1)]


def build_menu_tree(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Nest entries under their ``parent_page_id`` keeping the incoming order.
    Entries whose parent is not in the list are promoted to the top level,
    as is the first entry of any parent loop.
    """
    nodes = {entry["id"]: {**entry, "type": "link", "children": []} for entry in entries}
    position = {entry["id"]: index for index, entry in enumerate(entries)}
    roots: List[Dict[str, Any]] = []
    for entry in entries:
        node = nodes[entry["id"]]
        parent_id = entry.get("parent_page_id")
        if parent_id is not None and parent_id in nodes and parent_id != entry["id"]:
            nodes[parent_id]["children"].append(node)
        else:
            roots.append(node)

    reachable = set()

    def mark(start):
        stack = [start]
        while stack:
            node = stack.pop()
            if node["id"] not in reachable:
                reachable.add(node["id"])
                stack.extend(node["children"])

    for root in roots:
        mark(root)
    for entry in entries:
        if entry["id"] in reachable:
            continue
        node = nodes[entry["id"]]
        parent = nodes[entry["parent_page_id"]]
        parent["children"] = [child for child in parent["children"] if child is not node]
        roots.append(node)
        mark(node)
    roots.sort(key=lambda node: position[node["id"]])

    for node in nodes.values():
        if node["children"]:
            node["type"] = "dropdown"
    return roots


def get_navigation_for_user(user, resolver) -> List[Dict[str, Any]]:
    if not user or not getattr(user, "is_authenticated", False):
        return []
    pages = resolver.effective_menu_order(user.id, user.role)
    return build_menu_tree(serialize_menu(pages))
