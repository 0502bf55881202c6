"""Main entry point for the validator monitor."""

import argparse
import asyncio
import sys

import structlog

from validator_monitor.config import ApplicationConfig, load_config
from validator_monitor.errors import ConfigError
from validator_monitor.logging_config import configure_logging
from validator_monitor.rpc.pool import ClientPool
from validator_monitor.scheduler import Coordinator

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_CRASH = 12


async def run(config: ApplicationConfig, once: bool = False) -> None:
    pool = ClientPool.for_endpoints(config.endpoints())
    try:
        await Coordinator(config, pool).run(once=once)
    finally:
        await pool.aclose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Cosmos validator health monitor")
    parser.add_argument("-c", "--config", default=None, help="Path to TOML or YAML config")
    parser.add_argument("--once", action="store_true", help="Run one check cycle and exit")
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    configure_logging(config.logger)
    logger.debug("configuration loaded", config=config.model_dump())
    if not config.checkers:
        logger.warning("no checkers configured, nothing will be monitored")

    try:
        asyncio.run(run(config, once=bool(args.once)))
    except Exception as e:
        logger.critical(f"validator monitor crashed: {e}", exc_info=True)
        sys.stdout.flush()
        return EXIT_CRASH
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
