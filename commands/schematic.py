"""
Schematic commands (list, delete).
"""
import logging

import discord

from commands.base import CommandBase, CommandResponse, channel_only, get_subcommand, option, subcommand
from utils.discord_helpers import PastelColors, error_embed, make_embed

logger = logging.getLogger("mc-bridge.commands.schematic")


class SchematicCommand(CommandBase):
    name = "schematic"
    description = "Manage schematic files on the server"
    options = (
        subcommand("list", "List schematic files"),
        subcommand(
            "delete",
            "Delete a schematic file",
            options=[
                option(
                    "file_name",
                    "Schematic file to delete",
                    discord.AppCommandOptionType.string,
                    required=True,
                ),
            ],
        ),
    )

    @channel_only
    async def callback(self, interaction: discord.Interaction) -> CommandResponse:
        sub, values = get_subcommand(interaction)

        if sub == "list":
            return await self._list()
        if sub == "delete":
            return await self._delete(str(values.get("file_name") or ""))

        return CommandResponse(
            embeds=[error_embed("Schematic", f"Unknown sub command: {sub}")],
            ephemeral=True,
        )

    async def _list(self) -> CommandResponse:
        names = await self.context.schematics.list()
        if not names:
            return CommandResponse(
                embeds=[make_embed("Schematics", "There are no schematic files.", PastelColors.BLUE)]
            )

        text = "\n".join(f"• `{name}`" for name in names)
        if len(text) > 4000:
            text = text[:4000] + "\n…"
        embed = make_embed("Schematics", text, PastelColors.GREEN)
        embed.set_footer(text=f"{len(names)} files")
        return CommandResponse(embeds=[embed])

    async def _delete(self, file_name: str) -> CommandResponse:
        try:
            deleted = await self.context.schematics.delete(file_name)
        except ValueError as e:
            return CommandResponse(embeds=[error_embed("Schematic", str(e))], ephemeral=True)
        except OSError as e:
            logger.error(f"Failed to delete schematic {file_name}: {e}")
            return CommandResponse(
                embeds=[error_embed("Schematic", f"Could not delete `{file_name}`.")],
                ephemeral=True,
            )

        if not deleted:
            return CommandResponse(
                embeds=[make_embed("Schematic", f"`{file_name}` was not found.", PastelColors.YELLOW)],
                ephemeral=True,
            )

        return CommandResponse(
            embeds=[make_embed("Schematic", f"Deleted `{file_name}`.", PastelColors.GREEN)]
        )
