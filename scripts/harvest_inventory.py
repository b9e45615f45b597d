"""Harvest Toyota search-inventory results through the site's GraphQL API.

Two strategies are available:

* ``listener`` loads the search page with the requested parameters and
  captures the ``locateVehiclesByZip`` responses the page itself issues.
* ``query`` loads the page once, then pages through a custom GraphQL query
  executed from inside the page context.

Every option falls back to an environment variable of the same name
(upper-cased, e.g. ``ZIPCODE``) and then to a default.

Example usage (run from repository root):

    python scripts/harvest_inventory.py \
        --model rav4 \
        --zipcode 97204 \
        --distance 50 \
        --json data/rav4.json \
        --csv data/rav4.csv
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

ROOT_DIR = Path(__file__).resolve().parent.parent
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from toyota_inventory.config import HARVEST_MODES, RUN_MODES, HarvestConfig
from toyota_inventory.errors import HarvestError, MalformedRecord
from toyota_inventory.exports import (
    build_csv_rows,
    compute_metrics,
    export_inventory_to_json,
    persist_summary,
    write_csv_rows,
)
from toyota_inventory.harvest import run_harvest

LOGGER = logging.getLogger("toyota_inventory.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--model", help="Vehicle series slug, e.g. corolla (env MODEL, default corolla).")
    parser.add_argument("--zipcode", help="ZIP code to search around (env ZIPCODE, default 97204).")
    parser.add_argument("--distance", help="Search radius in miles (env DISTANCE, default 20).")
    parser.add_argument(
        "--salepending",
        help="Include sale-pending vehicles, true/false (env SALEPENDING, default true).",
    )
    parser.add_argument(
        "--intransit",
        help="Include in-transit vehicles, true/false (env INTRANSIT, default true).",
    )
    parser.add_argument("--json", help="Write the inventory as pretty-printed JSON to this path (env JSON).")
    parser.add_argument("--csv", help="Write the inventory as CSV to this path (env CSV).")
    parser.add_argument(
        "--summary-dir",
        help="Directory for a JSON/YAML run summary with spot-check metrics (env SUMMARY_DIR).",
    )
    parser.add_argument(
        "--mode",
        choices=HARVEST_MODES,
        help="Harvesting strategy (env MODE, default listener).",
    )
    parser.add_argument(
        "--run-mode",
        choices=RUN_MODES,
        help="headless: no browser window. headed: show the browser window (env RUN_MODE).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Navigation timeout in seconds (env NAVIGATE_TIMEOUT, default 120).",
    )
    parser.add_argument(
        "--drain-seconds",
        type=float,
        help=(
            "Listener mode only: wait up to this long after navigation for GraphQL responses "
            "whose bodies are still being read (env DRAIN_SECONDS, default 0)."
        ),
    )
    parser.add_argument(
        "--query-file",
        help="GraphQL template used in query mode (env QUERY_FILE, default bundled query.graphql).",
    )
    parser.add_argument("--loglevel", help="Logging level (env LOGLEVEL, default info).")
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = HarvestConfig.from_args(args)
    except ValueError as exc:
        parser.error(str(exc))

    configure_logging(config.log_level)
    LOGGER.info("Starting inventory harvest (mode=%s, params=%s)", config.mode, config.params.template_values())

    started_at = datetime.utcnow().isoformat() + "Z"
    try:
        inventory = asyncio.run(run_harvest(config))
    except HarvestError as exc:
        LOGGER.error("Harvest aborted: %s", exc)
        return 2

    vehicles = inventory.to_list()
    LOGGER.info("Found a total of %d inventory entr(ies) to write", len(vehicles))

    # Validate every record before touching any output file.
    try:
        csv_rows = build_csv_rows(vehicles) if config.csv_path else None
    except MalformedRecord as exc:
        LOGGER.error("Export aborted: %s", exc)
        return 3

    if config.json_path:
        export_inventory_to_json(vehicles, config.json_path)
        LOGGER.info("Inventory JSON written to %s", config.json_path)

    if config.csv_path and csv_rows is not None:
        write_csv_rows(csv_rows, config.csv_path)
        LOGGER.info("Inventory CSV written to %s", config.csv_path)

    if config.summary_dir:
        summary = {
            "started_at": started_at,
            "finished_at": datetime.utcnow().isoformat() + "Z",
            "config": config.to_metadata(),
            "metrics": compute_metrics(vehicles),
        }
        persist_summary(summary, config.summary_dir)

    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
