"""Query-mode harvesting: drive the paged GraphQL query from inside the page."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional

from toyota_inventory.bridge import ScriptBridge
from toyota_inventory.config import DEFAULT_QUERY_PATH, GRAPHQL_QUERY
from toyota_inventory.inventory import Inventory, extract_vehicles, read_total_pages

LOGGER = logging.getLogger("toyota_inventory.paging")


def load_query_template(path: Path = DEFAULT_QUERY_PATH) -> str:
    if not path.exists():
        raise FileNotFoundError(f"GraphQL query template not found: {path}")
    return path.read_text(encoding="utf-8")


def render_template(template: str, values: Mapping[str, Any]) -> str:
    """Replace the first ``{key}`` occurrence of each key with its value."""

    for key, value in values.items():
        template = template.replace(f"{{{key}}}", str(value), 1)
    return template


@dataclass
class PageCursor:
    page_no: int = 1
    total_pages: int = 1

    @property
    def has_next(self) -> bool:
        return self.page_no <= self.total_pages

    def advance(self) -> None:
        self.page_no += 1


class PagedQueryDriver:
    """Fetches pages 1..totalPages strictly one after another."""

    def __init__(self, bridge: ScriptBridge, inventory: Inventory, *, operation: str = GRAPHQL_QUERY) -> None:
        self.bridge = bridge
        self.inventory = inventory
        self.operation = operation
        self.fetched_pages: List[int] = []

    async def run(self, query: str, cursor: Optional[PageCursor] = None) -> PageCursor:
        cursor = cursor or PageCursor()
        while cursor.has_next:
            payload = await self.bridge.execute(render_template(query, {"pageNo": cursor.page_no}))
            self.fetched_pages.append(cursor.page_no)
            if LOGGER.isEnabledFor(logging.DEBUG):
                LOGGER.debug("GraphQL query for page %d returned: %s", cursor.page_no, json.dumps(payload, indent=2))

            cursor.total_pages = read_total_pages(payload, self.operation)
            LOGGER.debug("GraphQL query indicated total pages: %d", cursor.total_pages)
            self.inventory.extend(extract_vehicles(payload, self.operation))
            LOGGER.info("Processed page %d of %d", cursor.page_no, cursor.total_pages)
            cursor.advance()
        return cursor
