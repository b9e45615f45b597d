from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest
import yaml

from fakes import make_vehicle
from toyota_inventory.errors import MalformedRecord
from toyota_inventory.exports import (
    CSV_HEADERS,
    build_csv_rows,
    compute_metrics,
    export_inventory_to_csv,
    export_inventory_to_json,
    persist_summary,
)


SAMPLE_VEHICLES = [make_vehicle("JTDBCMFE1R3000001", "A"), make_vehicle("JTDBCMFE1R3000002", "B")]

EXPECTED_HEADERS = [
    "VIN",
    "Name",
    "Model",
    "Year",
    "Status",
    "Base MSRP",
    "Total MSRP",
    "Advertised Price",
    "Selling Price",
    "Exterior Color",
    "Interior Color",
    "Engine",
    "Drivetrain",
    "Transmission",
    "MPG City",
    "MPG Highway",
    "MPG Combined",
    "Dealer",
    "Dealer Website",
    "Distance",
    "Option Codes",
    "Option Names",
]


def test_export_inventory_to_csv_writes_fixed_columns(tmp_path: Path) -> None:
    output_file = tmp_path / "nested" / "inventory.csv"
    assert export_inventory_to_csv(SAMPLE_VEHICLES, output_file) == 2

    with output_file.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.reader(handle))

    assert rows[0] == EXPECTED_HEADERS == list(CSV_HEADERS)
    assert len(rows) == 3
    first, second = rows[1], rows[2]
    assert first[0] == "JTDBCMFE1R3000001"
    assert first[1] == "Corolla A"
    assert first[2] == "Corolla LE A"
    assert first[4] == "status-A"
    assert first[9] == "Ice Cap A"
    assert first[13] == "CVT A"
    assert first[17] == "Dealer A"
    assert first[20] == "A1,A2"
    assert first[21] == "Mats A,Guards A"
    assert second[0] == "JTDBCMFE1R3000002"
    assert second[10] == "Black Fabric B"
    assert second[18] == "https://dealer-b.example.com"
    assert second[20] == "B1,B2"


def test_build_csv_rows_matches_accessors() -> None:
    rows = build_csv_rows(SAMPLE_VEHICLES[:1])
    assert rows == [
        [
            "JTDBCMFE1R3000001",
            "Corolla A",
            "Corolla LE A",
            2024,
            "status-A",
            22000,
            23500,
            23000,
            22900,
            "Ice Cap A",
            "Black Fabric A",
            "2.0L 4-Cyl A",
            "FWD A",
            "CVT A",
            32,
            41,
            35,
            "Dealer A",
            "https://dealer-a.example.com",
            4.2,
            "A1,A2",
            "Mats A,Guards A",
        ]
    ]


def test_empty_options_render_as_empty_strings() -> None:
    vehicle = make_vehicle("V1")
    vehicle["options"] = []
    row = build_csv_rows([vehicle])[0]
    assert row[-2:] == ["", ""]


def test_missing_sub_field_is_fatal(tmp_path: Path) -> None:
    broken = make_vehicle("V2", "B")
    del broken["price"]["sellingPrice"]
    output_file = tmp_path / "inventory.csv"

    with pytest.raises(MalformedRecord) as excinfo:
        export_inventory_to_csv([SAMPLE_VEHICLES[0], broken], output_file)

    assert excinfo.value.path == ("price", "sellingPrice")
    assert excinfo.value.index == 1
    assert "vehicle[1]" in str(excinfo.value)
    assert not output_file.exists()


def test_missing_option_code_names_the_path() -> None:
    broken = make_vehicle("V3")
    broken["options"][1].pop("optionCd")

    with pytest.raises(MalformedRecord) as excinfo:
        build_csv_rows([broken])

    assert excinfo.value.path == ("options", "optionCd")


def test_export_inventory_to_json_is_pretty_printed(tmp_path: Path) -> None:
    output_file = tmp_path / "inventory.json"
    export_inventory_to_json(SAMPLE_VEHICLES, output_file)

    text = output_file.read_text(encoding="utf-8")
    assert json.loads(text) == SAMPLE_VEHICLES
    assert text.startswith("[\n  {")


def test_compute_metrics_counts_duplicates_and_statuses() -> None:
    vehicles = SAMPLE_VEHICLES + [make_vehicle("JTDBCMFE1R3000001", "A"), {"inventoryStatus": "A"}]
    metrics = compute_metrics(vehicles)

    assert metrics["total_vehicles"] == 4
    assert metrics["unique_vins"] == 2
    assert metrics["duplicate_vins"] == 1
    assert metrics["vehicles_missing_vin"] == 1
    assert metrics["status_counts"] == {"A": 1, "status-A": 2, "status-B": 1}
    assert metrics["unique_dealers"] == 2


def test_compute_metrics_empty_inventory() -> None:
    metrics = compute_metrics([])
    assert metrics["total_vehicles"] == 0
    assert metrics["status_counts"] == {}


def test_persist_summary_writes_json_and_yaml(tmp_path: Path) -> None:
    summary = {"metrics": {"total_vehicles": 2}, "config": {"mode": "listener"}}

    json_path, yaml_path = persist_summary(summary, tmp_path / "summaries")

    assert json.loads(json_path.read_text(encoding="utf-8")) == summary
    assert yaml.safe_load(yaml_path.read_text(encoding="utf-8")) == summary
