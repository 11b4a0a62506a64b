"""
Teleport point commands (list, add, remove).
"""
import logging

import discord

from commands.base import CommandBase, CommandResponse, channel_only, get_subcommand, option, subcommand
from errors import StoreError
from services.teleport_points import DIMENSIONS
from utils.discord_helpers import PastelColors, error_embed, make_embed

logger = logging.getLogger("mc-bridge.commands.teleport_point")


def _dimension_option() -> dict:
    return option(
        "dimension",
        "Dimension of the teleport point",
        discord.AppCommandOptionType.string,
        required=True,
        choices=DIMENSIONS,
    )


def _name_option() -> dict:
    return option("name", "Teleport point name", discord.AppCommandOptionType.string, required=True)


def _coordinate_option(axis: str) -> dict:
    return option(axis, f"{axis.upper()} coordinate", discord.AppCommandOptionType.integer, required=True)


def _checked_dimension(values: dict) -> str:
    dimension = values["dimension"]
    if dimension not in DIMENSIONS:
        raise ValueError(f"Unknown dimension: {dimension}")
    return dimension


async def _defer_for_reload(interaction: discord.Interaction) -> None:
    # Saving reloads the server, which can outlast the 3 second reply window
    await interaction.response.defer()


class TeleportPointCommand(CommandBase):
    name = "teleportpoint"
    description = "Manage in-game teleport points"
    options = (
        subcommand("list", "List teleport points"),
        subcommand(
            "add",
            "Add or update a teleport point",
            options=[
                _dimension_option(),
                _name_option(),
                _coordinate_option("x"),
                _coordinate_option("y"),
                _coordinate_option("z"),
            ],
        ),
        subcommand(
            "remove",
            "Remove a teleport point",
            options=[_dimension_option(), _name_option()],
        ),
    )

    @channel_only
    async def callback(self, interaction: discord.Interaction) -> CommandResponse:
        sub, values = get_subcommand(interaction)

        try:
            if sub == "list":
                return await self._list()
            if sub == "add":
                return await self._add(interaction, values)
            if sub == "remove":
                return await self._remove(interaction, values)
        except StoreError as e:
            logger.error(f"/teleportpoint {sub} failed: {e}")
            return CommandResponse(
                embeds=[error_embed("Teleport point", "Could not save the teleport points.")],
                ephemeral=True,
            )
        except (KeyError, TypeError, ValueError) as e:
            return CommandResponse(
                embeds=[error_embed("Teleport point", f"Invalid options: {e}")],
                ephemeral=True,
            )

        return CommandResponse(
            embeds=[error_embed("Teleport point", f"Unknown sub command: {sub}")],
            ephemeral=True,
        )

    async def _list(self) -> CommandResponse:
        points = await self.context.teleport_points.list()
        embed = make_embed("Teleport points", color=PastelColors.BLUE)

        for dimension in DIMENSIONS:
            lines = [
                f"`{p.name}`: {p.coordinate[0]} {p.coordinate[1]} {p.coordinate[2]}"
                for p in points
                if p.dimension == dimension
            ]
            embed.add_field(name=dimension, value="\n".join(lines) or "-", inline=False)

        return CommandResponse(embeds=[embed])

    async def _add(self, interaction: discord.Interaction, values: dict) -> CommandResponse:
        dimension = _checked_dimension(values)
        name = values["name"]
        coordinate = (int(values["x"]), int(values["y"]), int(values["z"]))

        await _defer_for_reload(interaction)

        inserted = await self.context.teleport_points.add(dimension, name, coordinate)

        verb = "Added" if inserted else "Updated"
        x, y, z = coordinate
        return CommandResponse(embeds=[make_embed(
            "Teleport point",
            f"{verb} `{name}` in {dimension} at {x} {y} {z}.",
            PastelColors.GREEN,
        )])

    async def _remove(self, interaction: discord.Interaction, values: dict) -> CommandResponse:
        dimension = _checked_dimension(values)
        name = values["name"]

        await _defer_for_reload(interaction)

        removed = await self.context.teleport_points.remove(dimension, name)
        if not removed:
            return CommandResponse(
                embeds=[make_embed(
                    "Teleport point",
                    f"`{name}` was not found in {dimension}.",
                    PastelColors.YELLOW,
                )],
                ephemeral=True,
            )

        return CommandResponse(embeds=[make_embed(
            "Teleport point",
            f"Removed `{name}` from {dimension}.",
            PastelColors.GREEN,
        )])
