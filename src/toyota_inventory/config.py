"""Immutable run configuration for the inventory harvester.

Every value is resolved once at startup, CLI argument first, then the
environment, then a default, and handed to the harvest as a frozen
``HarvestConfig``.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

BASE_URL = "https://www.toyota.com/search-inventory/model"
GRAPHQL_URI = "https://api.search-inventory.toyota.com/graphql"
GRAPHQL_QUERY = "locateVehiclesByZip"
DEFAULT_QUERY_PATH = Path(__file__).resolve().parent / "query.graphql"
NAVIGATE_TIMEOUT_S = 120

MODE_LISTENER = "listener"
MODE_QUERY = "query"
HARVEST_MODES = (MODE_LISTENER, MODE_QUERY)
RUN_MODES = ("headless", "headed")

BROWSER_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--start-maximized",
    "--disable-dev-shm-usage",
)
VIEWPORT = {"width": 1024, "height": 768}


def resolve_param(arg: Any, env: Any, default: Any = None) -> Any:
    """Return the first of ``arg``/``env`` that is set and non-empty, else ``default``."""

    if arg is not None and len(str(arg)):
        return arg
    if env is not None and len(str(env)):
        return env
    return default


@dataclass(frozen=True)
class QueryParameters:
    model: str = "corolla"
    zipcode: str = "97204"
    distance: str = "20"
    sale_pending: str = "true"
    in_transit: str = "true"

    def template_values(self) -> Dict[str, str]:
        """Placeholder names used by the URL and the GraphQL template."""

        return {
            "model": str(self.model),
            "zipcode": str(self.zipcode),
            "distance": str(self.distance),
            "salePending": str(self.sale_pending),
            "inTransit": str(self.in_transit),
        }


def build_listener_url(params: QueryParameters) -> str:
    return (
        f"{BASE_URL}/{params.model}/?zipcode={params.zipcode}&distance={params.distance}"
        f"&salePending={params.sale_pending}&inTransit={params.in_transit}"
    )


def build_bootstrap_url(params: QueryParameters) -> str:
    return f"{BASE_URL}/{params.model}/?zipcode={params.zipcode}"


@dataclass(frozen=True)
class HarvestConfig:
    params: QueryParameters
    mode: str = MODE_LISTENER
    json_path: Optional[Path] = None
    csv_path: Optional[Path] = None
    summary_dir: Optional[Path] = None
    log_level: str = "info"
    run_mode: str = "headless"
    executable_path: Optional[str] = None
    navigate_timeout_s: float = NAVIGATE_TIMEOUT_S
    drain_seconds: float = 0.0
    query_path: Path = DEFAULT_QUERY_PATH

    def __post_init__(self) -> None:
        if self.mode not in HARVEST_MODES:
            raise ValueError(f"Unknown harvest mode {self.mode!r}; expected one of {HARVEST_MODES}")
        if self.run_mode not in RUN_MODES:
            raise ValueError(f"Unknown run mode {self.run_mode!r}; expected one of {RUN_MODES}")
        if self.navigate_timeout_s <= 0:
            raise ValueError("Navigation timeout must be positive")
        if self.drain_seconds < 0:
            raise ValueError("Drain window must not be negative")

    @property
    def headless(self) -> bool:
        return self.run_mode == "headless"

    @property
    def navigate_timeout_ms(self) -> float:
        return self.navigate_timeout_s * 1000

    @classmethod
    def from_args(cls, args: Any, environ: Optional[Mapping[str, str]] = None) -> "HarvestConfig":
        """Build the configuration from an argparse namespace plus the environment."""

        env = os.environ if environ is None else environ
        params = QueryParameters(
            model=str(resolve_param(args.model, env.get("MODEL"), "corolla")),
            zipcode=str(resolve_param(args.zipcode, env.get("ZIPCODE"), "97204")),
            distance=str(resolve_param(args.distance, env.get("DISTANCE"), "20")),
            sale_pending=str(resolve_param(args.salepending, env.get("SALEPENDING"), "true")),
            in_transit=str(resolve_param(args.intransit, env.get("INTRANSIT"), "true")),
        )
        json_arg = resolve_param(args.json, env.get("JSON"))
        csv_arg = resolve_param(args.csv, env.get("CSV"))
        summary_arg = resolve_param(args.summary_dir, env.get("SUMMARY_DIR"))
        query_arg = resolve_param(args.query_file, env.get("QUERY_FILE"))

        return cls(
            params=params,
            mode=str(resolve_param(args.mode, env.get("MODE"), MODE_LISTENER)).lower(),
            json_path=Path(json_arg).resolve() if json_arg else None,
            csv_path=Path(csv_arg).resolve() if csv_arg else None,
            summary_dir=Path(summary_arg).resolve() if summary_arg else None,
            log_level=str(resolve_param(args.loglevel, env.get("LOGLEVEL"), "info")),
            run_mode=str(resolve_param(args.run_mode, env.get("RUN_MODE"), "headless")),
            executable_path=resolve_param(None, env.get("CHROME_EXECUTABLE_PATH")),
            navigate_timeout_s=float(resolve_param(args.timeout, env.get("NAVIGATE_TIMEOUT"), NAVIGATE_TIMEOUT_S)),
            drain_seconds=float(resolve_param(args.drain_seconds, env.get("DRAIN_SECONDS"), 0.0)),
            query_path=Path(query_arg).resolve() if query_arg else DEFAULT_QUERY_PATH,
        )

    def to_metadata(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "params": self.params.template_values(),
            "json_path": str(self.json_path) if self.json_path else None,
            "csv_path": str(self.csv_path) if self.csv_path else None,
            "run_mode": self.run_mode,
            "navigate_timeout_s": self.navigate_timeout_s,
            "drain_seconds": self.drain_seconds,
        }
