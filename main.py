"""
Minecraft Discord Chat Bridge - Main Entry Point

A Discord bot that relays chat between a Discord channel and a Minecraft
server, announces server and player events from the server log, and offers
slash commands backed by RCON.
"""
import argparse
import logging

from bot.client import MinecraftBridge
from config import DEFAULT_CONFIG_PATH, load_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger("mc-bridge")


def main():
    """Main entry point for the bot."""
    parser = argparse.ArgumentParser(description="Minecraft <-> Discord chat bridge")
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path of the config file (default: {DEFAULT_CONFIG_PATH})",
    )
    args = parser.parse_args()

    try:
        bridge = MinecraftBridge(load_config(args.config))
        bridge.run()
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        raise


if __name__ == "__main__":
    main()
