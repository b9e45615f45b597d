"""Run a GraphQL fetch inside the page and hand its JSON result back to the host.

The page and the host only share two exposed callables. Each call gets its own
token; the page passes the token back with the result so the host can match it
to the pending future in its correlation table.
"""
from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, Dict, List

from toyota_inventory.config import GRAPHQL_URI
from toyota_inventory.errors import BridgeExecutionError

LOGGER = logging.getLogger("toyota_inventory.bridge")

SUCCESS_CALLABLE = "inventoryFetchSuccess"
ERROR_CALLABLE = "inventoryFetchError"


def build_fetch_script(
    query: str,
    token: str,
    *,
    endpoint: str = GRAPHQL_URI,
    success_callable: str = SUCCESS_CALLABLE,
    error_callable: str = ERROR_CALLABLE,
) -> str:
    body_literal = json.dumps(json.dumps({"query": query}))
    return f"""
(() => {{
    const token = {json.dumps(token)};
    fetch(
        {json.dumps(endpoint)},
        {{
            method: 'POST',
            headers: {{ 'Content-Type': 'application/json' }},
            body: {body_literal},
        }})
        .then(response => {{
            if (!response.ok) throw new Error('HTTP Error: ' + response.status);
            return response.json();
        }})
        .then(data => {{ window.{success_callable}(token, data); }})
        .catch(error => {{ window.{error_callable}(token, String(error && error.message || error)); }});
}})();
""".strip()


class ScriptBridge:
    """Executes one in-page GraphQL query at a time through a ``BrowserSession``."""

    def __init__(self, session: Any, *, endpoint: str = GRAPHQL_URI) -> None:
        self.session = session
        self.endpoint = endpoint
        self._pending: Dict[str, "asyncio.Future[Any]"] = {}

    @property
    def pending_tokens(self) -> List[str]:
        return list(self._pending)

    def _resolve(self, token: str, value: Any) -> None:
        future = self._pending.get(token)
        if future is None:
            LOGGER.warning("Dropping GraphQL result for unknown bridge token %s", token)
            return
        if not future.done():
            future.set_result(value)

    def _reject(self, token: str, message: Any) -> None:
        future = self._pending.get(token)
        if future is None:
            LOGGER.warning("Dropping GraphQL error for unknown bridge token %s: %s", token, message)
            return
        if not future.done():
            future.set_exception(BridgeExecutionError(f"GraphQL request failed with error: {message}"))

    async def execute(self, query: str) -> Any:
        LOGGER.debug("Executing GraphQL query: %s", query)
        token = uuid.uuid4().hex
        future: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        self._pending[token] = future

        exposed: List[str] = []
        try:
            await self.session.expose_callable(SUCCESS_CALLABLE, self._resolve)
            exposed.append(SUCCESS_CALLABLE)
            await self.session.expose_callable(ERROR_CALLABLE, self._reject)
            exposed.append(ERROR_CALLABLE)

            await self.session.inject_script(build_fetch_script(query, token, endpoint=self.endpoint))
            LOGGER.info("Added script to execute GraphQL query")
            return await future
        finally:
            self._pending.pop(token, None)
            for name in exposed:
                await self.session.remove_callable(name)
