"""
Console command (cmd).
"""
import logging

import discord

from commands.base import CommandBase, CommandResponse, channel_only, get_options, option
from errors import RconNotConnectedError, RconTransportError
from utils.discord_helpers import PastelColors, code_block, error_embed, make_embed

logger = logging.getLogger("mc-bridge.commands.cmd")


def server_offline_response() -> CommandResponse:
    return CommandResponse(
        embeds=[error_embed("Server offline", "The Minecraft server is not reachable via RCON.")],
        ephemeral=True,
    )


class CmdCommand(CommandBase):
    name = "cmd"
    description = "Run a command on the Minecraft server console"
    options = (
        option(
            "command",
            "Minecraft command, without the leading slash",
            discord.AppCommandOptionType.string,
            required=True,
        ),
    )
    permissions = ("administrator",)

    @channel_only
    async def callback(self, interaction: discord.Interaction) -> CommandResponse:
        values = {opt["name"]: opt.get("value") for opt in get_options(interaction)}
        command = str(values.get("command") or "").strip().lstrip("/")
        if not command:
            return CommandResponse(
                embeds=[error_embed("Cmd", "No command given.")],
                ephemeral=True,
            )

        logger.warning(f"RCON command by {interaction.user}: {command}")

        if not self.context.rcon_service.is_connected:
            return server_offline_response()

        # The reply can take longer than Discord's 3 second window
        await interaction.response.defer()

        try:
            resp = await self.context.rcon_service.send(command)
        except RconNotConnectedError:
            return server_offline_response()
        except RconTransportError as e:
            return CommandResponse(
                embeds=[error_embed("Cmd", f"The connection was lost while running the command: {e}")],
                ephemeral=True,
            )

        embed = make_embed("Cmd", f"`/{command}`", PastelColors.GREEN)
        content = code_block(resp) if resp else None
        if not resp:
            embed.add_field(name="Output", value="No output.", inline=False)
        return CommandResponse(content=content, embeds=[embed])
