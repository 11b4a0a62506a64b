"""
Registration of slash commands with Discord and dispatch of interactions.

Commands are registered through the HTTP API one by one. Discord answers each
registration with the command id, which is the key used to route incoming
interactions to the command's callback.
"""
import logging
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Type

import discord

from commands.base import (
    CommandBase,
    CommandCallback,
    CommandContext,
    CommandDefinition,
    CommandResponse,
)
from utils.discord_helpers import error_embed

logger = logging.getLogger("mc-bridge.commands.registry")


class CommandHost(Protocol):
    """Where command definitions are published."""

    async def create_command(self, payload: dict) -> str: ...

    async def list_commands(self) -> List[dict]: ...

    async def delete_command(self, command_id: str) -> None: ...


class DiscordCommandHost:
    """Publishes commands through the Discord HTTP API, per guild or globally."""

    def __init__(self, client: discord.Client, guild_id: Optional[int] = None):
        self.client = client
        self.guild_id = guild_id

    @property
    def _application_id(self) -> int:
        if self.client.application_id is None:
            raise RuntimeError("Client is not logged in yet")
        return self.client.application_id

    async def create_command(self, payload: dict) -> str:
        http = self.client.http
        if self.guild_id is not None:
            data = await http.upsert_guild_command(self._application_id, self.guild_id, payload)
        else:
            data = await http.upsert_global_command(self._application_id, payload)
        return str(data["id"])

    async def list_commands(self) -> List[dict]:
        http = self.client.http
        if self.guild_id is not None:
            return list(await http.get_guild_commands(self._application_id, self.guild_id))
        return list(await http.get_global_commands(self._application_id))

    async def delete_command(self, command_id: str) -> None:
        http = self.client.http
        if self.guild_id is not None:
            await http.delete_guild_command(self._application_id, self.guild_id, command_id)
        else:
            await http.delete_global_command(self._application_id, command_id)


class CommandRegistry:
    """Maps Discord command ids to command callbacks."""

    def __init__(
        self,
        host: CommandHost,
        command_classes: Sequence[Type[CommandBase]],
    ):
        """
        Initialize the registry.

        Args:
            host: Where definitions are published.
            command_classes: Commands to register, in order.
        """
        self.host = host
        self.command_classes = tuple(command_classes)
        self._callbacks: Dict[str, CommandCallback] = {}
        self._definitions: List[CommandDefinition] = []

    @property
    def definitions(self) -> Tuple[CommandDefinition, ...]:
        """Definitions of the commands registered so far."""
        return tuple(self._definitions)

    @property
    def command_ids(self) -> Tuple[str, ...]:
        return tuple(self._callbacks)

    async def register_all(self, context: CommandContext) -> int:
        """
        Register every known command.

        A command that fails to register is logged and skipped; the others
        are registered regardless.

        Returns:
            int: Number of commands registered.
        """
        registered = 0
        for command_class in self.command_classes:
            try:
                command = command_class(context)
                definition = command.definition
                remote_id = await self.host.create_command(definition.to_payload())
            except Exception:
                logger.exception(f"Failed to register {command_class.__name__}")
                continue

            self._callbacks[remote_id] = command.callback
            self._definitions.append(definition)
            registered += 1
            logger.info(f"Registered /{definition.name} (id {remote_id})")

        return registered

    async def dispatch(self, interaction: discord.Interaction) -> bool:
        """
        Route an interaction to its command.

        Interactions for unknown command ids are ignored.

        Returns:
            bool: True if a command handled the interaction.
        """
        if interaction.type != discord.InteractionType.application_command:
            return False

        command_id = str((interaction.data or {}).get("id", ""))
        callback = self._callbacks.get(command_id)
        if callback is None:
            logger.debug(f"Ignoring interaction for unknown command id {command_id!r}")
            return False

        try:
            response = await callback(interaction)
        except Exception:
            logger.exception(f"Command {command_id} raised")
            response = CommandResponse(
                embeds=[error_embed("Error", "Something went wrong while running this command.")],
                ephemeral=True,
            )

        await self._respond(interaction, response)
        return True

    async def delete_all(self) -> None:
        """Delete every command registered on the host and clear the table."""
        try:
            remote_commands = await self.host.list_commands()
        except Exception:
            logger.exception("Failed to list registered commands")
            remote_commands = []

        for remote in remote_commands:
            command_id = str(remote.get("id"))
            try:
                await self.host.delete_command(command_id)
                logger.info(f"Deleted /{remote.get('name')} (id {command_id})")
            except discord.NotFound:
                logger.debug(f"Command {command_id} was already deleted")
            except Exception:
                logger.exception(f"Failed to delete command {command_id}")

        self._callbacks.clear()
        self._definitions.clear()

    async def _respond(self, interaction: discord.Interaction, response: CommandResponse) -> None:
        kwargs = {"ephemeral": response.ephemeral}
        if response.content is not None:
            kwargs["content"] = response.content
        if response.embeds:
            kwargs["embeds"] = response.embeds

        try:
            # Callbacks that wait on the server defer first; answer with a followup then
            if interaction.response.is_done():
                await interaction.followup.send(**kwargs)
            else:
                await interaction.response.send_message(**kwargs)
        except discord.HTTPException as e:
            logger.error(f"Failed to respond to interaction {interaction.id}: {e}")
