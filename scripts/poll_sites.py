#!/usr/bin/env python3
"""
Run a single poll cycle against the configured inventory and print the result.

Usage:
    python scripts/poll_sites.py

Useful for checking bindings and connectivity before starting the service:
    SITEWATCH_INVENTORY_FILE=inventory.yaml python scripts/poll_sites.py
"""

import asyncio
import sys
import logging
from pathlib import Path

from dotenv import load_dotenv

# Add src to path so we can import sitewatch
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sitewatch.config import Settings
from sitewatch.services.health_checker import EndpointHealthChecker
from sitewatch.services.inventory_provider import FileInventoryProvider
from sitewatch.services.poll_scheduler import PollScheduler
from sitewatch.services.status_store import StatusStore

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)

logger = logging.getLogger(__name__)


async def main():
    """Poll every endpoint once."""
    load_dotenv()
    settings = Settings.from_env()

    store = StatusStore(max_history=settings.max_history)
    checker = EndpointHealthChecker(
        timeout_seconds=settings.check_timeout_seconds,
        verify=settings.tls_verify,
    )
    scheduler = PollScheduler(
        inventory=FileInventoryProvider(settings.inventory_file),
        checker=checker,
        store=store,
        max_concurrent_checks=settings.max_concurrent_checks,
    )

    try:
        results = await scheduler.run_cycle()
    finally:
        await checker.aclose()

    if results["status"] == "error":
        logger.error(f"Inventory could not be read: {results['error']}")
        sys.exit(1)

    for identity in sorted(store.identities()):
        status = store.latest(identity)
        state = "UP  " if status.is_responding else "DOWN"
        detail = status.error_message or f"HTTP {status.http_status_code}"
        logger.info(f"  {state} {identity}  {status.response_time_ms}ms  {detail}")

    if results["skipped_sites"]:
        logger.warning(f"Sites without a usable binding: {results['skipped_sites']}")

    if results["down"] > 0:
        logger.warning(f"{results['down']} endpoints are down")
        sys.exit(1)  # Non-zero exit code for monitoring


if __name__ == "__main__":
    asyncio.run(main())
