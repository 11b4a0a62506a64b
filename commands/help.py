"""
Help command.
"""
from importlib import metadata

import discord

from commands.base import CommandBase, CommandResponse, channel_only
from utils.discord_helpers import PastelColors, make_embed

PROJECT_NAME = "mc-chat-bridge"

FEATURES = (
    "Relays chat between Discord and the Minecraft server",
    "Announces server start/stop and player login/logout",
    "Shows who is online when players join or leave",
    "Uploads schematic files posted in this channel to the server",
)


def _project_version() -> str:
    try:
        return metadata.version(PROJECT_NAME)
    except metadata.PackageNotFoundError:
        return "dev"


class HelpCommand(CommandBase):
    name = "help"
    description = "Show what this bot does and its commands"

    @channel_only
    async def callback(self, interaction: discord.Interaction) -> CommandResponse:
        commands = [
            f"/{definition.name}: {definition.description}"
            for definition in self.context.definitions_getter()
        ]

        embed = make_embed(
            "ℹ️ Help",
            "Bridges this channel with the Minecraft server.",
            PastelColors.BLUE,
        )
        embed.set_author(name=f"{PROJECT_NAME} v{_project_version()}")
        embed.add_field(
            name="✨ Features",
            value="\n".join(f"🔹 {feature}" for feature in FEATURES),
            inline=False,
        )
        embed.add_field(
            name="🔧 Commands",
            value="```\n" + ("\n".join(commands) or "-") + "\n```",
            inline=False,
        )
        return CommandResponse(embeds=[embed])
