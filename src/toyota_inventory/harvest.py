"""Run one harvesting strategy against a single browser tab."""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from playwright.async_api import async_playwright

from toyota_inventory.bridge import ScriptBridge
from toyota_inventory.config import (
    MODE_LISTENER,
    HarvestConfig,
    build_bootstrap_url,
    build_listener_url,
)
from toyota_inventory.errors import HarvestError
from toyota_inventory.interceptor import ResponseInterceptor
from toyota_inventory.inventory import Inventory
from toyota_inventory.paging import PagedQueryDriver, load_query_template, render_template
from toyota_inventory.session import BrowserSession

LOGGER = logging.getLogger("toyota_inventory.harvest")


class Stage:
    LAUNCH = "launch_browser"
    LISTEN = "listen_page_queries"
    QUERY = "execute_custom_query"
    CLOSE = "close_browser"


def log_stage(stage: str, message: str) -> None:
    LOGGER.info("[stage:%s] %s", stage, message)


async def run_with_listener(session: BrowserSession, config: HarvestConfig) -> Inventory:
    """Load the search page with the run parameters and capture its own GraphQL responses."""

    log_stage(Stage.LISTEN, "Running with listener on page queries")
    inventory = Inventory()
    interceptor = ResponseInterceptor(inventory)

    session.subscribe(interceptor.handle_response)
    LOGGER.debug("Attached response listener")
    try:
        await session.navigate(build_listener_url(config.params))
        await interceptor.drain(config.drain_seconds)
    except HarvestError as exc:
        # An upstream status failure is the root cause of whatever followed it.
        if interceptor.failure is not None and interceptor.failure is not exc:
            raise interceptor.failure from exc
        raise
    finally:
        session.unsubscribe(interceptor.handle_response)
        interceptor.close()

    interceptor.raise_for_failure()
    if LOGGER.isEnabledFor(logging.DEBUG):
        LOGGER.debug("Page content: %s", await session.content())
    LOGGER.info("Captured %d matching GraphQL response(s)", interceptor.captured)
    return inventory


async def run_with_custom_query(
    session: BrowserSession,
    config: HarvestConfig,
    *,
    lead_id: Optional[str] = None,
) -> Inventory:
    """Establish a page context, then page through the query from inside it."""

    log_stage(Stage.QUERY, "Running with custom query")
    inventory = Inventory()

    await session.navigate(build_bootstrap_url(config.params))

    query = render_template(load_query_template(config.query_path), config.params.template_values())
    query = render_template(query, {"leadid": lead_id or str(uuid.uuid4())})
    LOGGER.debug("Executing GraphQL query: %s", query)

    driver = PagedQueryDriver(ScriptBridge(session), inventory)
    cursor = await driver.run(query)
    LOGGER.info("Fetched %d page(s) of %d", len(driver.fetched_pages), cursor.total_pages)
    return inventory


async def harvest(session: BrowserSession, config: HarvestConfig) -> Inventory:
    if config.mode == MODE_LISTENER:
        inventory = await run_with_listener(session, config)
    else:
        inventory = await run_with_custom_query(session, config)
    inventory.freeze()
    return inventory


async def run_harvest(config: HarvestConfig) -> Inventory:
    """Launch Chromium, harvest with the configured strategy, and always close the browser."""

    async with async_playwright() as playwright:
        log_stage(Stage.LAUNCH, f"Launching browser (mode={config.mode}, run_mode={config.run_mode})")
        session = await BrowserSession.launch(playwright, config)
        try:
            return await harvest(session, config)
        finally:
            log_stage(Stage.CLOSE, "Closing browser")
            await session.close()
