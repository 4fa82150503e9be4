"""Main entry point for the gateway bridge."""

import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from bridge import GatewayBridge
from config import BridgeConfig
from core.errors import ConfigurationError


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(os.getenv("LOG_FILE", "gateway-bridge.log")),
        ],
    )


def load_config() -> BridgeConfig:
    """Load configuration from ``BRIDGE_CONFIG`` (TOML) or the environment."""
    config_file = os.getenv("BRIDGE_CONFIG")
    if config_file:
        return BridgeConfig.from_file(Path(config_file))
    return BridgeConfig.from_env()


async def async_main() -> int:
    """Async main function.

    Returns:
        Exit code
    """
    logger = logging.getLogger(__name__)

    try:
        config = load_config()
        config.validate()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        bridge = GatewayBridge(config)
        await bridge.run()
        return 0
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


def main() -> None:
    """Main entry point."""
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    log_level = os.getenv("LOG_LEVEL", "INFO")
    setup_logging(log_level)

    logger = logging.getLogger(__name__)
    logger.info("Starting gateway bridge...")

    try:
        exit_code = asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Interrupted")
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
