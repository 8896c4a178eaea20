"""Script to run the conformance tester with structured logging and error handling."""

import asyncio
import logging
import os
import sys
from typing import Optional

from .bank import IsubankClient
from .config import TesterConfiguration, load_config
from .errors import TesterError
from .isulog import IsulogClient
from .tester import PostTester, PreTester

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging for the tester."""
    log_level = os.getenv("TESTER_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


async def run_tests(config: TesterConfiguration) -> bool:
    """
    Run the pre-test and post-test against the configured exchange.

    Returns:
        True when every check passed
    """
    isubank = IsubankClient(config.bank_url, config.bank_app_id, timeout=config.client_timeout)
    isulog = IsulogClient(config.log_url, config.log_app_id, timeout=config.client_timeout)
    try:
        logger.info("Starting pre-test against %s", config.app_url)
        await PreTester(config, isulog, isubank).run()
        logger.info("Pre-test passed")
        await PostTester(config, isulog, isubank).run()
        logger.info("Post-test passed")
        return True
    except TesterError as e:
        logger.error("Test failed: %s", e)
        return False
    except Exception as e:
        logger.exception("Unexpected error: %s", e)
        return False
    finally:
        await isubank.aclose()
        await isulog.aclose()


async def main(config_path: Optional[str] = None) -> int:
    """Main entry point; returns the process exit code."""
    _setup_logging()

    config_path = config_path or os.getenv("TESTER_CONFIG")
    if config_path and not os.path.exists(config_path):
        logger.warning("Config file not found: %s, using defaults", config_path)
    try:
        config = load_config(config_path)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    success = await run_tests(config)
    return 0 if success else 1


def cli() -> None:
    config_path = sys.argv[1] if len(sys.argv) > 1 else None
    sys.exit(asyncio.run(main(config_path)))


if __name__ == "__main__":
    cli()
