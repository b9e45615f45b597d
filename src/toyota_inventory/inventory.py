"""Ordered, append-only collection of harvested vehicle records."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List

from toyota_inventory.config import GRAPHQL_QUERY
from toyota_inventory.errors import MalformedPayload

LOGGER = logging.getLogger("toyota_inventory.inventory")

VehicleRecord = Dict[str, Any]


def _operation_result(payload: Any, operation: str) -> Dict[str, Any]:
    data = payload.get("data") if isinstance(payload, dict) else None
    result = data.get(operation) if isinstance(data, dict) else None
    if not isinstance(result, dict):
        raise MalformedPayload(f"GraphQL payload has no 'data.{operation}' result")
    return result


def extract_vehicles(payload: Any, operation: str = GRAPHQL_QUERY) -> List[VehicleRecord]:
    """Return the vehicle list of a GraphQL payload, unchanged."""

    vehicles = _operation_result(payload, operation).get("vehicleSummary")
    if not isinstance(vehicles, list):
        raise MalformedPayload(f"GraphQL payload has no 'data.{operation}.vehicleSummary' list")
    return vehicles


def read_total_pages(payload: Any, operation: str = GRAPHQL_QUERY) -> int:
    pagination = _operation_result(payload, operation).get("pagination")
    total = pagination.get("totalPages") if isinstance(pagination, dict) else None
    if total is None:
        raise MalformedPayload(f"GraphQL payload has no 'data.{operation}.pagination.totalPages' value")
    try:
        return int(total)
    except (TypeError, ValueError) as exc:
        raise MalformedPayload(f"totalPages is not an integer: {total!r}") from exc


class Inventory:
    """Vehicle records in arrival order. Duplicates are kept."""

    def __init__(self) -> None:
        self._records: List[VehicleRecord] = []
        self._frozen = False

    def extend(self, records: Iterable[VehicleRecord]) -> int:
        if self._frozen:
            raise RuntimeError("Inventory is frozen; the harvesting run has completed")
        before = len(self._records)
        self._records.extend(records)
        added = len(self._records) - before
        LOGGER.info("Found %d vehicle(s)", added)
        return added

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def to_list(self) -> List[VehicleRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[VehicleRecord]:
        return iter(self._records)

    def __getitem__(self, index: int) -> VehicleRecord:
        return self._records[index]
