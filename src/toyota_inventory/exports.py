"""Utilities for validating and exporting harvested vehicle records."""
from __future__ import annotations

import csv
import json
import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Sequence, Tuple

import yaml

from toyota_inventory.errors import MalformedRecord

LOGGER = logging.getLogger("toyota_inventory.exports")

_MISSING = object()


def read_path(record: Any, *path: str) -> Any:
    """Return the value at ``path`` inside ``record`` or raise ``MalformedRecord``."""

    value = record
    for depth, key in enumerate(path):
        value = value.get(key, _MISSING) if isinstance(value, dict) else _MISSING
        if value is _MISSING:
            raise MalformedRecord(path[: depth + 1])
    return value


def field(*path: str) -> Callable[[Dict[str, Any]], Any]:
    def accessor(record: Dict[str, Any]) -> Any:
        return read_path(record, *path)

    return accessor


def joined_options(key: str) -> Callable[[Dict[str, Any]], str]:
    def accessor(record: Dict[str, Any]) -> str:
        options = read_path(record, "options")
        if not isinstance(options, list):
            raise MalformedRecord(("options",))
        values: List[str] = []
        for option in options:
            try:
                values.append(str(read_path(option, key)))
            except MalformedRecord:
                raise MalformedRecord(("options", key)) from None
        return ",".join(values)

    return accessor


CSV_COLUMNS: Sequence[Tuple[str, Callable[[Dict[str, Any]], Any]]] = (
    ("VIN", field("vin")),
    ("Name", field("model", "marketingName")),
    ("Model", field("model", "marketingTitle")),
    ("Year", field("year")),
    ("Status", field("inventoryStatus")),
    ("Base MSRP", field("price", "baseMsrp")),
    ("Total MSRP", field("price", "totalMsrp")),
    ("Advertised Price", field("price", "advertisedPrice")),
    ("Selling Price", field("price", "sellingPrice")),
    ("Exterior Color", field("extColor", "marketingName")),
    ("Interior Color", field("intColor", "marketingName")),
    ("Engine", field("engine", "name")),
    ("Drivetrain", field("drivetrain", "title")),
    ("Transmission", field("transmission", "transmissionType")),
    ("MPG City", field("mpg", "city")),
    ("MPG Highway", field("mpg", "highway")),
    ("MPG Combined", field("mpg", "combined")),
    ("Dealer", field("dealerMarketingName")),
    ("Dealer Website", field("dealerWebsite")),
    ("Distance", field("distance")),
    ("Option Codes", joined_options("optionCd")),
    ("Option Names", joined_options("marketingName")),
)

CSV_HEADERS: Sequence[str] = tuple(header for header, _ in CSV_COLUMNS)


def build_csv_rows(vehicles: Iterable[Dict[str, Any]]) -> List[List[Any]]:
    """Evaluate every column accessor for every record; any gap is fatal."""

    rows: List[List[Any]] = []
    for idx, vehicle in enumerate(vehicles):
        try:
            rows.append([accessor(vehicle) for _, accessor in CSV_COLUMNS])
        except MalformedRecord as exc:
            raise MalformedRecord(exc.path, index=idx) from exc
    return rows


def export_inventory_to_csv(vehicles: Sequence[Dict[str, Any]], output_path: Path) -> int:
    """Serialize vehicles to the fixed-column CSV. Returns the data row count."""

    rows = build_csv_rows(vehicles)
    write_csv_rows(rows, output_path)
    return len(rows)


def write_csv_rows(rows: Sequence[Sequence[Any]], output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(CSV_HEADERS)
        writer.writerows(rows)


def export_inventory_to_json(vehicles: Sequence[Dict[str, Any]], output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(list(vehicles), indent=2), encoding="utf-8")


def compute_metrics(vehicles: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Spot-check counts for the run summary. Tolerates incomplete records."""

    total = len(vehicles)
    vins = [vehicle.get("vin") for vehicle in vehicles if vehicle.get("vin")]
    unique_vins = set(vins)
    statuses = Counter(str(vehicle.get("inventoryStatus") or "unknown") for vehicle in vehicles)
    dealers = {vehicle.get("dealerMarketingName") for vehicle in vehicles if vehicle.get("dealerMarketingName")}

    return {
        "total_vehicles": total,
        "unique_vins": len(unique_vins),
        "duplicate_vins": len(vins) - len(unique_vins),
        "vehicles_missing_vin": total - len(vins),
        "status_counts": dict(sorted(statuses.items())),
        "unique_dealers": len(dealers),
    }


def persist_summary(summary: Dict[str, Any], output_dir: Path) -> Tuple[Path, Path]:
    """Write the run summary as JSON and YAML side by side."""

    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.utcnow().strftime("%Y%m%dT%H%M%SZ")
    json_path = output_dir / f"harvest_{timestamp}.json"
    json_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")
    LOGGER.info("Summary JSON written -> %s", json_path)

    yaml_path = output_dir / f"harvest_{timestamp}.yml"
    with yaml_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(summary, handle, sort_keys=False)
    LOGGER.info("Summary YAML written -> %s", yaml_path)
    return json_path, yaml_path
