"""
SAT>IP Server Discovery - Main Entry Point
"""

import asyncio
import sys
import logging
import os

import yaml

from config_loader import load_config, setup_logging, get_discovery_config
from satip import DiscoveryError, SatIpDiscovery

logger = logging.getLogger(__name__)

async def main() -> int:
    """Main entry point"""

    # Get config file path from environment variable or use default
    config_path = os.environ.get('CONFIG_FILE', 'config/config.yaml')

    try:
        config = load_config(config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Could not load configuration from {config_path}: {e}", file=sys.stderr)
        return 1

    setup_logging(config)
    logger.info(f"Using configuration file: {config_path}")

    try:
        result = await SatIpDiscovery(get_discovery_config(config)).run()
    except DiscoveryError as e:
        logger.error(f"Discovery failed: {e}")
        return 1

    for server in result.devices:
        logger.info(f"Found: {server}")
        if server.capabilities:
            logger.info(f"  capabilities: {server.capabilities}")

    logger.info(f"Replies: {result.replies_received} received, {result.replies_discarded} discarded, "
                f"{result.fetch_failures} description fetches failed")
    return 0

if __name__ == "__main__":
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nDiscovery stopped by user")
        sys.exit(0)
