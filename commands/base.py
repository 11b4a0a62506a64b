"""
Building blocks shared by every slash command.
"""
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import discord

from config import Config
from services.rcon import RCONService
from services.schematics import SchematicStore
from services.teleport_points import TeleportPointStore
from utils.discord_helpers import PastelColors, make_embed

logger = logging.getLogger("mc-bridge.commands")

EPHEMERAL_FLAG = discord.MessageFlags.ephemeral.flag


@dataclass(frozen=True)
class CommandDefinition:
    """Everything Discord needs to know to show a command."""

    name: str
    description: str
    options: Tuple[dict, ...] = ()
    permissions: Tuple[str, ...] = ()

    def to_payload(self) -> dict:
        """
        Build the application command JSON payload.

        ``permissions`` are ``discord.Permissions`` flag names; members need
        all of them to see the command.
        """
        payload: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "type": discord.AppCommandType.chat_input.value,
        }
        if self.options:
            payload["options"] = [dict(option) for option in self.options]
        if self.permissions:
            perms = discord.Permissions(**{name: True for name in self.permissions})
            payload["default_member_permissions"] = str(perms.value)
        return payload


@dataclass
class CommandResponse:
    """Reply to an interaction."""

    content: Optional[str] = None
    embeds: List[discord.Embed] = field(default_factory=list)
    ephemeral: bool = False
    type: discord.InteractionResponseType = discord.InteractionResponseType.channel_message

    @property
    def flags(self) -> int:
        return EPHEMERAL_FLAG if self.ephemeral else 0


@dataclass
class CommandContext:
    """Services handed to every command."""

    config: Config
    rcon_service: RCONService
    teleport_points: TeleportPointStore
    schematics: SchematicStore
    definitions_getter: Callable[[], Sequence[CommandDefinition]]


CommandCallback = Callable[[discord.Interaction], Awaitable[CommandResponse]]


def option(
    name: str,
    description: str,
    option_type: discord.AppCommandOptionType,
    required: bool = False,
    choices: Sequence[str] = (),
    options: Sequence[dict] = (),
) -> dict:
    """Build one application command option."""
    data: Dict[str, Any] = {
        "name": name,
        "description": description,
        "type": option_type.value,
    }
    if required:
        data["required"] = True
    if choices:
        data["choices"] = [{"name": choice, "value": choice} for choice in choices]
    if options:
        data["options"] = list(options)
    return data


def subcommand(name: str, description: str, options: Sequence[dict] = ()) -> dict:
    return option(name, description, discord.AppCommandOptionType.subcommand, options=options)


def get_options(interaction: discord.Interaction) -> List[dict]:
    data = interaction.data or {}
    return list(data.get("options", []))


def get_subcommand(interaction: discord.Interaction) -> Tuple[Optional[str], Dict[str, Any]]:
    """
    Get the invoked sub command and its option values.

    Returns:
        Tuple[Optional[str], Dict[str, Any]]: Sub command name (None if
            missing) and a name -> value mapping of its options.
    """
    options = get_options(interaction)
    if not options:
        return None, {}
    sub = options[0]
    values = {opt["name"]: opt.get("value") for opt in sub.get("options", [])}
    return sub.get("name"), values


def wrong_channel_response(channel_id: int) -> CommandResponse:
    embed = make_embed(
        "Wrong channel",
        f"This command can only be used in <#{channel_id}>.",
        PastelColors.YELLOW,
    )
    return CommandResponse(embeds=[embed], ephemeral=True)


def channel_only(callback):
    """Answer with the wrong channel response outside the configured chat channel."""

    @functools.wraps(callback)
    async def wrapper(self, interaction: discord.Interaction) -> CommandResponse:
        channel_id = self.context.config.discord.chat_channel_id
        if interaction.channel_id != channel_id:
            logger.info(
                f"/{self.definition.name} used in channel {interaction.channel_id} "
                f"by {interaction.user}, rejected"
            )
            return wrong_channel_response(channel_id)
        return await callback(self, interaction)

    return wrapper


class CommandBase:
    """
    Base class of all slash commands.

    Subclasses set ``name``, ``description`` and optionally ``options`` and
    ``permissions`` and implement ``callback``.
    """

    name: str = ""
    description: str = ""
    options: Tuple[dict, ...] = ()
    permissions: Tuple[str, ...] = ()

    def __init__(self, context: CommandContext):
        self.context = context

    @property
    def definition(self) -> CommandDefinition:
        return CommandDefinition(
            name=self.name,
            description=self.description,
            options=tuple(self.options),
            permissions=tuple(self.permissions),
        )

    async def callback(self, interaction: discord.Interaction) -> CommandResponse:
        raise NotImplementedError
