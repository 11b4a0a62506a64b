"""
Discord bot client setup and the wiring between Discord, the log and RCON.
"""
import asyncio
import json
import logging
import signal
from typing import Optional, Sequence, Type

import discord
import requests

from commands.base import CommandBase, CommandContext
from commands.cmd import CmdCommand
from commands.help import HelpCommand
from commands.registry import CommandHost, CommandRegistry, DiscordCommandHost
from commands.schematic import SchematicCommand
from commands.teleport_point import TeleportPointCommand
from config import Config
from errors import DiscordLoginError, RconError
from services.log_parser import (
    LogEvent,
    PlayerAction,
    PlayerActionKind,
    PlayerChat,
    ServerLifecycle,
    ServerLifecycleKind,
)
from services.log_tailer import LogTailer
from services.rcon import RCONService
from services.schematics import SchematicStore, is_schematic_filename
from services.teleport_points import TeleportPointStore
from utils.discord_helpers import PastelColors, escape_player_name, make_embed, update_bot_presence

logger = logging.getLogger("mc-bridge.client")

DEFAULT_COMMANDS: Sequence[Type[CommandBase]] = (
    CmdCommand,
    SchematicCommand,
    TeleportPointCommand,
    HelpCommand,
)

WARNING_REACTION = "⚠️"
SUCCESS_REACTION = "✅"


class MinecraftBridge:
    """Main bot class that orchestrates all components."""

    def __init__(
        self,
        config: Config,
        rcon_service: Optional[RCONService] = None,
        command_host: Optional[CommandHost] = None,
        command_classes: Sequence[Type[CommandBase]] = DEFAULT_COMMANDS,
    ):
        """
        Initialize the bridge.

        Args:
            config: Loaded configuration.
            rcon_service: RCON service; built from ``config`` if omitted.
            command_host: Where slash commands are published; the Discord
                API of this bot if omitted.
            command_classes: Slash commands to register.
        """
        self.config = config

        # Setup Discord client
        intents = discord.Intents.default()
        intents.message_content = True
        self.bot = discord.Client(intents=intents)

        # Initialize services
        self.rcon_service = rcon_service or RCONService(
            config.rcon.host,
            config.rcon.port,
            config.rcon.password,
        )
        self.teleport_points = TeleportPointStore(
            config.minecraft.teleport_point_path,
            config.minecraft.teleport_function_path,
            self.rcon_service,
        )
        self.schematics = SchematicStore(config.minecraft.schematic_path)
        self.tailer = LogTailer(config.minecraft.log_path, sink=self.handle_log_event)

        # Setup commands
        self.registry = CommandRegistry(
            command_host or DiscordCommandHost(self.bot, config.discord.guild_id),
            command_classes,
        )
        self.command_context = CommandContext(
            config=config,
            rcon_service=self.rcon_service,
            teleport_points=self.teleport_points,
            schematics=self.schematics,
            definitions_getter=lambda: self.registry.definitions,
        )

        self.chat_channel: Optional[discord.abc.Messageable] = None
        self._started = False
        self._shutdown_started = False
        self._shutdown_task: Optional[asyncio.Task] = None

        # Register event handlers
        self._register_events()

    def _register_events(self) -> None:
        """Register Discord event handlers."""

        @self.bot.event
        async def on_ready():
            logger.info(f"Logged in as {self.bot.user} (ID: {self.bot.user.id})")
            await self.start_services()

        @self.bot.event
        async def on_message(message: discord.Message):
            await self.handle_message(message)

        @self.bot.event
        async def on_interaction(interaction: discord.Interaction):
            await self.registry.dispatch(interaction)

    async def start_services(self) -> None:
        """Resolve the chat channel, register commands and start tailing the log."""
        if self._started:
            return
        self._started = True

        channel_id = self.config.discord.chat_channel_id
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(channel_id)
            except discord.HTTPException as e:
                logger.error(f"Could not find chat channel {channel_id}: {e}")
        self.chat_channel = channel

        # Drop commands left over from a previous run before registering
        await self.registry.delete_all()
        count = await self.registry.register_all(self.command_context)
        logger.info(f"{count} slash commands registered.")

        self.tailer.start()

        await update_bot_presence(
            self.bot,
            True if self.rcon_service.is_connected else None,
        )

    async def handle_message(self, message: discord.Message) -> None:
        """Relay a chat channel message to Minecraft and store schematic attachments."""
        if message.author.bot:
            return
        if message.channel.id != self.config.discord.chat_channel_id:
            return

        for attachment in message.attachments:
            if is_schematic_filename(attachment.filename):
                await self._store_schematic(message, attachment)

        if message.content:
            await self.relay_to_minecraft(message)

    async def relay_to_minecraft(self, message: discord.Message) -> None:
        username = message.author.display_name
        text = {"text": f"<{username}> {message.content}"}
        logger.info(f"<{username}> {message.content}")

        try:
            await self.rcon_service.send(f"tellraw @a {json.dumps(text, ensure_ascii=False)}")
        except RconError as e:
            logger.warning(f"Could not relay message to Minecraft: {e}")
            await self._react(message, WARNING_REACTION)

    async def _store_schematic(self, message: discord.Message, attachment: discord.Attachment) -> None:
        try:
            await self.schematics.save_from_url(attachment.filename, attachment.url)
        except (ValueError, requests.RequestException, OSError) as e:
            logger.error(f"Failed to store schematic {attachment.filename}: {e}")
            await self._react(message, WARNING_REACTION)
            return

        await self._react(message, SUCCESS_REACTION)
        await self._send(content=f"Uploaded `{attachment.filename}` to the server.")

    async def handle_log_event(self, event: LogEvent) -> None:
        """Forward one server log event to Discord."""
        if isinstance(event, PlayerChat):
            await self._send(content=f"<{event.name}> {event.message}")
        elif isinstance(event, PlayerAction):
            await self._announce_player_action(event)
        elif isinstance(event, ServerLifecycle):
            await self._announce_server_lifecycle(event)

    async def _announce_player_action(self, event: PlayerAction) -> None:
        players = await self.rcon_service.get_player_list()
        if players is None:
            return

        name = escape_player_name(event.name)
        if event.kind is PlayerActionKind.LOGIN:
            embed = make_embed("Player joined", f"`{name}` joined the game", PastelColors.GREEN)
        else:
            embed = make_embed("Player left", f"`{name}` left the game", PastelColors.RED)

        embed.add_field(
            name="Online",
            value=", ".join(f"`{user}`" for user in players.users) or "-",
            inline=True,
        )
        embed.add_field(name="Players", value=f"{players.count}/{players.max}", inline=True)
        await self._send(embed=embed)

        count = int(players.count) if players.count.isdigit() else None
        await update_bot_presence(self.bot, True, count)

    async def _announce_server_lifecycle(self, event: ServerLifecycle) -> None:
        if event.kind is ServerLifecycleKind.START:
            await self._send(embed=make_embed("Server started", color=PastelColors.GREEN))
            await update_bot_presence(self.bot, True, 0)
            if not self.rcon_service.is_connected:
                await self.rcon_service.launch()
        else:
            await self._send(embed=make_embed("Server stopped", color=PastelColors.RED))
            await update_bot_presence(self.bot, False)

    async def _send(self, content: Optional[str] = None, embed: Optional[discord.Embed] = None) -> None:
        if self.chat_channel is None:
            return

        try:
            await self.chat_channel.send(
                content=content,
                embed=embed,
                allowed_mentions=discord.AllowedMentions.none(),
            )
        except discord.HTTPException as e:
            logger.error(f"Failed to send to the chat channel: {e}")

    @staticmethod
    async def _react(message: discord.Message, emoji: str) -> None:
        try:
            await message.add_reaction(emoji)
        except discord.HTTPException as e:
            logger.debug(f"Could not add reaction: {e}")

    async def shutdown(self) -> None:
        """Delete the slash commands, stop tailing, close RCON and the Discord client."""
        if self._shutdown_started:
            return
        self._shutdown_started = True
        logger.info("Shutting down...")

        try:
            if self.bot.is_ready() and not self.bot.is_closed():
                await self.registry.delete_all()
        finally:
            self.tailer.stop()
            await self.rcon_service.stop()
            await self.bot.close()

    def _request_shutdown(self) -> None:
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.create_task(self.shutdown())

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._request_shutdown)
            except NotImplementedError:
                # Not available on Windows; Ctrl+C then ends the process directly
                pass

        await self.rcon_service.launch()

        try:
            async with self.bot:
                await self.bot.start(self.config.discord.token)
        except discord.LoginFailure as e:
            raise DiscordLoginError(f"Failed to log in to Discord: {e}") from e
        finally:
            if self._shutdown_task is not None:
                await self._shutdown_task
            await self.shutdown()

    def run(self) -> None:
        """
        Start the bot.

        Validates configuration and runs until SIGINT/SIGTERM.
        """
        # Validate configuration
        self.config.validate()

        logger.info("Starting Minecraft chat bridge...")
        asyncio.run(self._run())
