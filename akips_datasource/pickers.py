from __future__ import annotations

from typing import Optional


def _quote(value: Optional[str]) -> str:
    return '"' + (value or "").replace('"', '""') + '"'


def device_list_query() -> str:
    return "mlist device *"


def child_list_query(device: str) -> str:
    return f"mlist * {_quote(device)} *"


def attribute_list_query(device: str, child: str) -> str:
    return f"mlist * {_quote(device)} {_quote(child)} *"
