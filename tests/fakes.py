"""In-memory stand-ins for the Playwright objects the harvester touches."""
from __future__ import annotations

import asyncio
import re
from typing import Any, Callable, Dict, List, Optional, Union

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from toyota_inventory.bridge import ERROR_CALLABLE, SUCCESS_CALLABLE
from toyota_inventory.config import GRAPHQL_URI

TOKEN_RE = re.compile(r'const token = "([0-9a-f]+)";')
PAGE_NO_RE = re.compile(r"pageNo: (\d+)")

OPERATION_BODY = '{"operationName":"locateVehiclesByZip","variables":{"zipCode":"97204"}}'


def make_vehicle(vin: str, suffix: str = "A") -> Dict[str, Any]:
    return {
        "vin": vin,
        "year": 2024,
        "inventoryStatus": f"status-{suffix}",
        "model": {"marketingName": f"Corolla {suffix}", "marketingTitle": f"Corolla LE {suffix}"},
        "price": {
            "baseMsrp": 22000,
            "totalMsrp": 23500,
            "advertisedPrice": 23000,
            "sellingPrice": 22900,
        },
        "extColor": {"marketingName": f"Ice Cap {suffix}"},
        "intColor": {"marketingName": f"Black Fabric {suffix}"},
        "engine": {"name": f"2.0L 4-Cyl {suffix}"},
        "drivetrain": {"title": f"FWD {suffix}"},
        "transmission": {"transmissionType": f"CVT {suffix}"},
        "mpg": {"city": 32, "highway": 41, "combined": 35},
        "dealerMarketingName": f"Dealer {suffix}",
        "dealerWebsite": f"https://dealer-{suffix.lower()}.example.com",
        "distance": 4.2,
        "options": [
            {"optionCd": f"{suffix}1", "marketingName": f"Mats {suffix}"},
            {"optionCd": f"{suffix}2", "marketingName": f"Guards {suffix}"},
        ],
    }


def make_payload(vins: List[str], total_pages: int = 1, page_no: int = 1) -> Dict[str, Any]:
    return {
        "data": {
            "locateVehiclesByZip": {
                "pagination": {"pageNo": page_no, "totalPages": total_pages},
                "vehicleSummary": [make_vehicle(vin) for vin in vins],
            }
        }
    }


class FakeRequest:
    def __init__(self, method: str = "POST", post_data: Optional[str] = OPERATION_BODY) -> None:
        self.method = method
        self.post_data = post_data


class FakeResponse:
    def __init__(
        self,
        url: str = GRAPHQL_URI,
        *,
        status: int = 200,
        request: Optional[FakeRequest] = None,
        payload: Any = None,
        json_delay: float = 0.0,
    ) -> None:
        self.url = url
        self.status = status
        self.request = request or FakeRequest()
        self.payload = payload
        self.json_delay = json_delay
        self.json_calls = 0

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    async def json(self) -> Any:
        self.json_calls += 1
        if self.json_delay:
            await asyncio.sleep(self.json_delay)
        return self.payload


PageResult = Union[Dict[str, Any], str]


async def _wait(delay: float, timeout_ms: float, what: str) -> None:
    # Behaves like a Playwright wait: gives up with TimeoutError at ``timeout_ms``.
    if timeout_ms and delay * 1000 > timeout_ms:
        await asyncio.sleep(timeout_ms / 1000)
        raise PlaywrightTimeoutError(f"Timeout {timeout_ms:.0f}ms exceeded waiting for {what}")
    if delay:
        await asyncio.sleep(delay)


class FakePage:
    """Emits scripted responses during ``goto`` and answers injected fetch scripts.

    ``page_results`` maps a page number to either a GraphQL payload (success) or
    a string (passed to the error bridge). ``goto_error`` is raised after the
    scripted responses have been delivered.
    """

    def __init__(
        self,
        *,
        responses: Optional[List[FakeResponse]] = None,
        page_results: Optional[Dict[int, PageResult]] = None,
        goto_error: Optional[Exception] = None,
        script_error: Optional[Exception] = None,
        load_delay: float = 0.0,
        idle_delay: float = 0.0,
    ) -> None:
        self.responses = list(responses or [])
        self.page_results = dict(page_results or {})
        self.goto_error = goto_error
        self.script_error = script_error
        self.load_delay = load_delay
        self.idle_delay = idle_delay
        self.listeners: Dict[str, List[Callable[..., Any]]] = {}
        self.bindings: Dict[str, Callable[..., Any]] = {}
        self.visited: List[str] = []
        self.scripts: List[str] = []
        self.requested_pages: List[int] = []
        self.wait_timeouts: List[float] = []

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Callable[..., Any]) -> None:
        self.listeners.get(event, []).remove(handler)

    async def goto(self, url: str, wait_until: str = "load", timeout: float = 0) -> None:
        self.visited.append(url)
        self.wait_timeouts.append(timeout)
        for response in self.responses:
            for handler in list(self.listeners.get("response", [])):
                await handler(response)
        if self.goto_error is not None:
            raise self.goto_error
        await _wait(self.load_delay, timeout, "load")

    async def wait_for_load_state(self, state: str = "load", timeout: float = 0) -> None:
        self.wait_timeouts.append(timeout)
        await _wait(self.idle_delay, timeout, state)

    async def content(self) -> str:
        return "<html></html>"

    async def expose_function(self, name: str, callback: Callable[..., Any]) -> None:
        if name in self.bindings:
            raise RuntimeError(f'Function "{name}" has been already registered')
        self.bindings[name] = callback

    async def add_script_tag(self, content: str = "") -> None:
        if self.script_error is not None:
            raise self.script_error
        self.scripts.append(content)
        token = TOKEN_RE.search(content).group(1)
        page_no = int(PAGE_NO_RE.search(content).group(1))
        self.requested_pages.append(page_no)

        result = self.page_results.get(page_no, "HTTP Error: 404")
        loop = asyncio.get_running_loop()
        if isinstance(result, str):
            loop.call_soon(self.bindings[ERROR_CALLABLE], token, result)
        else:
            loop.call_soon(self.bindings[SUCCESS_CALLABLE], token, result)
