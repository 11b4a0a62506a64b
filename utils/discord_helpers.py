"""
Discord-specific utility functions.
"""
import logging
from typing import Optional

import discord

logger = logging.getLogger("mc-bridge.discord")

MAX_CODE_BLOCK_LENGTH = 1900


# Pastel color palette for embeds
class PastelColors:
    """Pastel color palette for Discord embeds."""
    GREEN = discord.Color.from_rgb(169, 223, 191)      # Pastel mint green
    RED = discord.Color.from_rgb(255, 179, 186)        # Pastel pink/red
    YELLOW = discord.Color.from_rgb(255, 223, 186)     # Pastel peach
    BLUE = discord.Color.from_rgb(174, 198, 207)       # Pastel blue
    PURPLE = discord.Color.from_rgb(203, 195, 227)     # Pastel lavender
    GREY = discord.Color.from_rgb(189, 195, 199)       # Pastel grey


def make_embed(
    title: str,
    description: Optional[str] = None,
    color: discord.Color = PastelColors.BLUE,
) -> discord.Embed:
    """Build an embed with the bridge's default look."""
    return discord.Embed(title=title, description=description, color=color)


def error_embed(title: str, description: str) -> discord.Embed:
    return make_embed(title, description, PastelColors.RED)


def code_block(text: str, language: str = "log") -> str:
    """
    Wrap text in a code block that fits in one message.

    Long text keeps its tail, which holds the most recent output.
    """
    if len(text) > MAX_CODE_BLOCK_LENGTH:
        text = "…" + text[-MAX_CODE_BLOCK_LENGTH:]
    return f"```{language}\n{text}\n```"


def escape_player_name(name: str) -> str:
    return discord.utils.escape_markdown(name)


async def update_bot_presence(
    bot: discord.Client,
    server_running: Optional[bool],
    player_count: Optional[int] = None,
) -> None:
    """
    Update the bot's Discord presence based on server status.

    Args:
        bot: Discord bot client.
        server_running: True/False for a known state, None if unknown.
        player_count: Number of players online.
    """
    if server_running is None:
        status = discord.Status.online
        activity_text = "Minecraft: status unknown"
    elif not server_running:
        status = discord.Status.idle
        activity_text = "Minecraft: offline"
    elif player_count is None:
        status = discord.Status.online
        activity_text = "Minecraft: running"
    elif player_count == 1:
        status = discord.Status.online
        activity_text = "Minecraft: 1 player online"
    else:
        status = discord.Status.online
        activity_text = f"Minecraft: {player_count} players online"

    try:
        await bot.change_presence(
            status=status,
            activity=discord.Game(name=activity_text),
        )
    except (discord.HTTPException, ConnectionError) as e:
        logger.debug(f"Could not update presence: {e}")
