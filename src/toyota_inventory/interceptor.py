"""Listener-mode harvesting: pick the GraphQL exchange out of page traffic."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Set

from toyota_inventory.config import GRAPHQL_QUERY, GRAPHQL_URI
from toyota_inventory.errors import HarvestError, MalformedPayload, UpstreamHTTPError
from toyota_inventory.inventory import Inventory, extract_vehicles

LOGGER = logging.getLogger("toyota_inventory.interceptor")


class ResponseInterceptor:
    """Appends vehicles from matching ``locateVehiclesByZip`` responses.

    A response is used only when its normalized URL equals the endpoint, the
    request was a POST, and the request body mentions the operation marker.
    A non-success status on the endpoint is fatal; it is recorded here and
    raised by :meth:`raise_for_failure` once navigation has returned, because
    exceptions raised inside event handlers never reach the navigating caller.
    """

    def __init__(
        self,
        inventory: Inventory,
        *,
        endpoint: str = GRAPHQL_URI,
        operation: str = GRAPHQL_QUERY,
    ) -> None:
        self.inventory = inventory
        self.endpoint = endpoint.lower().strip()
        self.operation = operation
        self.failure: Optional[HarvestError] = None
        self.captured = 0
        self._closed = False
        self._in_flight: Set["asyncio.Task[Any]"] = set()

    async def handle_response(self, response: Any) -> None:
        if self._closed or self.failure is not None:
            return

        url = response.url.lower().strip()
        status = response.status
        LOGGER.debug("Handled response for URL %s with status %s", url, status)
        if url != self.endpoint:
            return

        if not response.ok:
            self.failure = UpstreamHTTPError(status, url)
            LOGGER.error("GraphQL request to %s failed with %s status", url, status)
            return

        request = response.request
        if (request.method or "").upper() != "POST":
            return

        post_data = request.post_data or ""
        LOGGER.debug("Post data: %s", post_data)
        if self.operation not in post_data:
            return

        LOGGER.info("Captured response for GraphQL query from %s", url)
        task = asyncio.current_task()
        if task is not None:
            self._in_flight.add(task)
        try:
            payload = await response.json()
            if LOGGER.isEnabledFor(logging.DEBUG):
                LOGGER.debug("Response body %s", json.dumps(payload, indent=2))
            vehicles = extract_vehicles(payload, self.operation)
        except ValueError as exc:
            self.failure = MalformedPayload(f"Unreadable GraphQL response from {url}: {exc}")
            LOGGER.error("%s", self.failure)
            return
        except HarvestError as exc:
            self.failure = exc
            LOGGER.error("%s", exc)
            return
        finally:
            if task is not None:
                self._in_flight.discard(task)

        # The run may have ended while the body was being read.
        if self._closed:
            LOGGER.warning("Discarding GraphQL response from %s received after harvest completed", url)
            return
        self.captured += 1
        self.inventory.extend(vehicles)

    async def drain(self, timeout: float) -> None:
        """Wait up to ``timeout`` seconds for matching responses still being read."""

        if timeout <= 0 or not self._in_flight:
            return
        pending = set(self._in_flight)
        LOGGER.info("Waiting up to %.1fs for %d in-flight GraphQL response(s)", timeout, len(pending))
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        if still_pending:
            LOGGER.warning("%d GraphQL response(s) still in flight after drain window", len(still_pending))

    def close(self) -> None:
        self._closed = True

    def raise_for_failure(self) -> None:
        if self.failure is not None:
            raise self.failure
