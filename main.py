#!/usr/bin/env python3
"""Entry point for the Cosmos/EVM validator block exporter.

This module provides the main entry point that loads configuration from a
TOML file (or the environment), configures logging and runs the exporter
until it receives SIGINT or SIGTERM.
"""

import argparse
import asyncio
import logging
import os
import sys

from pythonjsonlogger.json import JsonFormatter

from cosmos_evm_exporter.config import ExporterConfig, LoggingConfig
from cosmos_evm_exporter.exporter import CosmosEvmExporter

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Get logger for this module
logger = logging.getLogger(__name__)


def setup_logging(config: LoggingConfig, level_override: str | None = None) -> None:
    """Configure logging for the application.

    Args:
        config: Logging settings (stdout/file outputs, text or JSON format)
        level_override: Level name that takes precedence over the config
    """
    level_name = (level_override or config.log_level).upper()
    log_level: int = getattr(logging, level_name, logging.INFO)

    if config.log_format == "json":
        formatter: logging.Formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        )
    else:
        formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = []
    if config.enable_stdout:
        handlers.append(logging.StreamHandler(sys.stdout))
    if config.enable_file_log:
        handlers.append(logging.FileHandler(config.log_file))
    if not handlers:
        handlers.append(logging.NullHandler())

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)


async def main() -> None:
    """Main entry point for the exporter.

    Parses startup arguments, loads configuration and runs the exporter.

    Raises:
        SystemExit: On configuration or runtime errors
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Cosmos/EVM Exporter - Track validator blocks across consensus and execution layers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables (used when --config is not given):
  EVM_ADDRESS        - Validator coinbase address on the execution layer
  TARGET_VALIDATOR   - Validator proposer address on the consensus layer
  RPC_ENDPOINT       - Consensus layer RPC (default: http://localhost:26657)
  ETH_ENDPOINT       - Execution layer RPC (default: http://localhost:8545)
  METRICS_PORT       - Prometheus port (default: 2113)
  LOG_LEVEL          - Logging level (can be overridden with --log-level)
  LOG_FORMAT         - text or json
        """
    )
    parser.add_argument(
        "--config",
        default=os.environ.get("EXPORTER_CONFIG"),
        help="Path to a TOML configuration file"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured logging level"
    )
    args: argparse.Namespace = parser.parse_args()

    try:
        if args.config:
            config: ExporterConfig = ExporterConfig.from_toml(args.config)
        else:
            config = ExporterConfig.from_env()
    except (ValueError, OSError) as e:
        # Logging is not configured yet
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error(f"Configuration Error: {e}")
        logger.error("Required settings:")
        logger.error("  - evm_address / EVM_ADDRESS: validator coinbase address")
        logger.error("  - target_validator / TARGET_VALIDATOR: validator proposer address")
        logger.error("  - rpc_endpoint / RPC_ENDPOINT: consensus layer RPC endpoint")
        logger.error("  - eth_endpoint / ETH_ENDPOINT: execution layer RPC endpoint")
        sys.exit(1)

    setup_logging(config.logging, args.log_level)
    logger.info("=== Cosmos/EVM Exporter Starting ===")

    try:
        exporter: CosmosEvmExporter = CosmosEvmExporter(config)
        await exporter.run()

    except KeyboardInterrupt:
        logger.info("\nReceived interrupt signal, shutting down gracefully...")
        sys.exit(0)

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    # Run the main async function
    asyncio.run(main())
