"""
Configuration module for the Minecraft chat bridge.
Loads the JSON (with comments) config file and applies environment overrides.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import json5
from dotenv import load_dotenv

from errors import ConfigLoadError

DEFAULT_CONFIG_PATH = "config.json"


@dataclass(frozen=True)
class DiscordConfig:
    """Discord settings."""

    token: str
    chat_channel_id: int
    guild_id: Optional[int] = None


@dataclass(frozen=True)
class RconConfig:
    """RCON settings."""

    host: str
    port: int
    password: str


@dataclass(frozen=True)
class MinecraftConfig:
    """
    Minecraft server paths.

    Relative optional paths are resolved against ``server_path`` except for
    ``teleport_point_path``, which belongs to the bot itself.
    """

    server_path: Path
    schematic_path: Path
    teleport_point_path: Path
    teleport_function_path: Path

    @property
    def log_path(self) -> Path:
        return self.server_path / "logs" / "latest.log"


@dataclass(frozen=True)
class Config:
    """Aggregate configuration."""

    discord: DiscordConfig
    rcon: RconConfig
    minecraft: MinecraftConfig

    def validate(self) -> None:
        """
        Validate that all required configuration values are present.

        Raises:
            ConfigLoadError: If any required value is missing.
        """
        required = {
            "discord.token": self.discord.token,
            "discord.chatChannel": self.discord.chat_channel_id,
            "rcon.host": self.rcon.host,
            "rcon.password": self.rcon.password,
        }
        missing = [key for key, value in required.items() if not value]
        if missing:
            raise ConfigLoadError(
                f"Missing required configuration values: {', '.join(missing)}\n"
                "Please set them in the config file or environment."
            )


def _section(data: dict, name: str) -> dict:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigLoadError(f"Config section '{name}' must be an object")
    return section


def _to_int(value, key: str) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigLoadError(f"Config value '{key}' must be an integer, got {value!r}") from e


def _resolve(base: Path, value: Optional[str], default: str) -> Path:
    path = Path(value) if value else Path(default)
    return path if path.is_absolute() else base / path


def load_config(path: str = DEFAULT_CONFIG_PATH) -> Config:
    """
    Load configuration from ``path`` and the environment.

    ``DISCORD_TOKEN`` and ``RCON_PASSWORD`` (also read from a ``.env`` file)
    take precedence over the values in the file.

    Raises:
        ConfigLoadError: If the file cannot be read or parsed.
    """
    load_dotenv()

    try:
        with open(path, encoding="utf-8") as f:
            data = json5.load(f)
    except (OSError, ValueError) as e:
        raise ConfigLoadError(f"Failed to load config file '{path}': {e}") from e

    if not isinstance(data, dict):
        raise ConfigLoadError(f"Config file '{path}' must contain an object")

    discord_data = _section(data, "discord")
    rcon_data = _section(data, "rcon")
    minecraft_data = _section(data, "minecraft")

    discord = DiscordConfig(
        token=os.getenv("DISCORD_TOKEN") or discord_data.get("token", ""),
        chat_channel_id=_to_int(discord_data.get("chatChannel"), "discord.chatChannel") or 0,
        guild_id=_to_int(discord_data.get("guildId"), "discord.guildId"),
    )

    rcon = RconConfig(
        host=rcon_data.get("host", "127.0.0.1"),
        port=_to_int(rcon_data.get("port"), "rcon.port") or 25575,
        password=os.getenv("RCON_PASSWORD") or rcon_data.get("password", ""),
    )

    server_path = Path(minecraft_data.get("serverPath", "."))
    minecraft = MinecraftConfig(
        server_path=server_path,
        schematic_path=_resolve(
            server_path,
            minecraft_data.get("schematicPath"),
            "plugins/WorldEdit/schematics",
        ),
        teleport_point_path=Path(
            minecraft_data.get("teleportPointPath", "teleport_points.json")
        ),
        teleport_function_path=_resolve(
            server_path,
            minecraft_data.get("teleportFunctionPath"),
            "world/datapacks/bridge/data/bridge/functions/teleport_points.mcfunction",
        ),
    )

    return Config(discord=discord, rcon=rcon, minecraft=minecraft)
