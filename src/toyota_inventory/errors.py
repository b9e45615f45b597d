"""Fatal error types raised while harvesting or exporting inventory."""
from __future__ import annotations

from typing import Optional, Sequence


class HarvestError(RuntimeError):
    """Base class for conditions that abort a harvesting run."""


class NavigationTimeout(HarvestError):
    """Raised when a page navigation does not settle within its timeout."""


class NavigationError(HarvestError):
    """Raised when the browser cannot load a page (DNS, connection, crash)."""


class UpstreamHTTPError(HarvestError):
    """Raised when the targeted GraphQL exchange returns a non-success status."""

    def __init__(self, status: int, url: Optional[str] = None) -> None:
        self.status = status
        self.url = url
        super().__init__(f"GraphQL request failed with {status} status")


class BridgeExecutionError(HarvestError):
    """Raised when an in-page fetch fails or the script bridge is misused."""


class MalformedPayload(HarvestError):
    """Raised when a GraphQL payload lacks the blocks the harvester reads."""


class MalformedRecord(ValueError):
    """Raised at export time when a vehicle record lacks an expected sub-field."""

    def __init__(self, path: Sequence[str], index: Optional[int] = None) -> None:
        self.path = tuple(path)
        self.index = index
        location = f"vehicle[{index}]" if index is not None else "vehicle"
        super().__init__(f"{location}: missing field '{'.'.join(self.path)}'")
