from pathlib import Path
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from commands.base import CommandContext
from config import Config, DiscordConfig, MinecraftConfig, RconConfig
from services.schematics import SchematicStore
from services.teleport_points import TeleportPointStore

CHAT_CHANNEL_ID = 1234
OTHER_CHANNEL_ID = 9999


class FakeMCRcon:
    """Stand-in for ``mcrcon.MCRcon`` recording every call."""

    def __init__(self, host, password, port=25575, timeout=5, replies=None, fail_connect=False):
        self.host = host
        self.password = password
        self.port = port
        self.timeout = timeout
        self.socket = None
        self.replies = dict(replies or {})
        self.fail_connect = fail_connect
        self.fail_command = False
        self.connected = False
        self.disconnect_calls = 0
        self.commands: List[str] = []

    def connect(self):
        if self.fail_connect:
            raise ConnectionRefusedError("connection refused")
        self.connected = True

    def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False

    def command(self, command):
        self.commands.append(command)
        if self.fail_command:
            raise ConnectionResetError("connection reset")
        return self.replies.get(command, "")


class FakeRconFactory:
    """Builds ``FakeMCRcon`` clients; the first ``failures`` connects fail."""

    def __init__(self, failures: int = 0, replies: Optional[dict] = None):
        self.failures = failures
        self.replies = replies or {}
        self.clients: List[FakeMCRcon] = []

    def __call__(self, host, password, port=25575, timeout=5):
        client = FakeMCRcon(
            host,
            password,
            port=port,
            timeout=timeout,
            replies=self.replies,
            fail_connect=len(self.clients) < self.failures,
        )
        self.clients.append(client)
        return client


def make_interaction(
    options: Optional[list] = None,
    channel_id: int = CHAT_CHANNEL_ID,
    command_id: str = "1",
    name: str = "test",
):
    """Build a fake application command interaction."""
    interaction = MagicMock()
    interaction.id = 42
    interaction.type = discord.InteractionType.application_command
    interaction.channel_id = channel_id
    interaction.user = "tester#0001"
    interaction.data = {"id": command_id, "name": name, "options": options or []}
    interaction.response.send_message = AsyncMock()
    interaction.followup.send = AsyncMock()

    deferred = []
    interaction.response.is_done = MagicMock(side_effect=lambda: bool(deferred))
    interaction.response.defer = AsyncMock(side_effect=lambda **kwargs: deferred.append(kwargs))
    return interaction


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        discord=DiscordConfig(token="token", chat_channel_id=CHAT_CHANNEL_ID),
        rcon=RconConfig(host="127.0.0.1", port=25575, password="secret"),
        minecraft=MinecraftConfig(
            server_path=tmp_path,
            schematic_path=tmp_path / "schematics",
            teleport_point_path=tmp_path / "teleport_points.json",
            teleport_function_path=tmp_path / "functions" / "teleport_points.mcfunction",
        ),
    )


@pytest.fixture
def rcon_service():
    service = MagicMock()
    service.send = AsyncMock(return_value="")
    service.get_player_list = AsyncMock(return_value=None)
    service.launch = AsyncMock(return_value=True)
    service.stop = AsyncMock()
    service.is_connected = True
    return service


@pytest.fixture
def command_context(config, rcon_service):
    return CommandContext(
        config=config,
        rcon_service=rcon_service,
        teleport_points=TeleportPointStore(
            config.minecraft.teleport_point_path,
            config.minecraft.teleport_function_path,
            rcon_service,
        ),
        schematics=SchematicStore(config.minecraft.schematic_path),
        definitions_getter=lambda: (),
    )
