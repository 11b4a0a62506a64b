"""
RCON service module for Minecraft server communication.
"""
import asyncio
import logging
import re
import socket
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from mcrcon import MCRcon, MCRconException

from errors import RconError, RconNotConnectedError, RconTransportError

logger = logging.getLogger("mc-bridge.rcon")

_LIST_RE = re.compile(r"^There are (\S*) of a max of (\S*) players online: ?(.*)$")


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass
class PlayerList:
    """Parsed reply of the ``list`` command."""

    count: str
    max: str
    users: List[str] = field(default_factory=list)


def parse_player_list(text: str) -> Optional[PlayerList]:
    """
    Parse the reply of the ``list`` command.

    Args:
        text: Raw reply, e.g. ``There are 2 of a max of 20 players online: Alice, Bob``.

    Returns:
        Optional[PlayerList]: Parsed list, or None if the reply has another shape.
    """
    m = _LIST_RE.match(text.strip())
    if not m:
        return None

    count, max_players, users = m.groups()
    return PlayerList(
        count=count,
        max=max_players,
        users=[u for u in users.split(", ") if u != ""],
    )


class RCONService:
    """
    Keeps one RCON connection to the server.

    Commands are only sent while connected; a lost connection is retried in
    the background with exponential backoff until ``stop`` is called.
    """

    def __init__(
        self,
        host: str,
        port: int,
        password: str,
        rcon_factory: Callable[..., MCRcon] = MCRcon,
        timeout: float = 5.0,
        retry_delay: float = 2.0,
        max_retry_delay: float = 60.0,
    ):
        """
        Initialize RCON service.

        Args:
            host: RCON host address.
            port: RCON port.
            password: RCON password.
            rcon_factory: Builds the underlying client; called like ``MCRcon``.
            timeout: Socket timeout in seconds for connect and commands.
            retry_delay: First delay before reconnecting after a failure.
            max_retry_delay: Upper bound of the reconnect delay.
        """
        self.host = host
        self.port = port
        self.password = password
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay

        self.state = ConnectionState.DISCONNECTED

        self._rcon_factory = rcon_factory
        self._client: Optional[MCRcon] = None
        # mcrcon is blocking; one worker keeps every call on the same socket in order
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rcon")
        self._lock = asyncio.Lock()
        self._retry_task: Optional[asyncio.Task] = None
        self._next_delay = retry_delay
        self._stopped = False

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def _connect_blocking(self, client: MCRcon) -> None:
        client.connect()
        # mcrcon's SIGALRM timeout only works on the main thread
        if client.socket is not None:
            client.socket.settimeout(self.timeout)

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def launch(self) -> bool:
        """
        Connect to the server.

        On failure the service stays disconnected and a reconnect is scheduled.

        Returns:
            bool: True if the connection is up.
        """
        self._stopped = False
        if self.is_connected:
            return True

        client = self._rcon_factory(self.host, self.password, port=self.port, timeout=0)
        try:
            await asyncio.wait_for(self._run(self._connect_blocking, client), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"RCON connection to {self.host}:{self.port} timed out after {self.timeout:.0f} seconds")
            # Unblocks the worker thread; the close itself queues behind it
            _shutdown_socket(client)
            self._executor.submit(_close_quietly, client)
            self._connection_failed()
            return False
        except (OSError, MCRconException) as e:
            logger.warning(f"RCON connection to {self.host}:{self.port} failed: {e}")
            await self._run(_close_quietly, client)
            self._connection_failed()
            return False

        self._client = client
        self.state = ConnectionState.CONNECTED
        self._next_delay = self.retry_delay
        logger.info(f"RCON connected to {self.host}:{self.port}")
        return True

    def _connection_failed(self) -> None:
        self.state = ConnectionState.DISCONNECTED
        self._schedule_reconnect()

    async def stop(self) -> None:
        """Close the connection and cancel pending reconnects."""
        self._stopped = True

        if self._retry_task is not None:
            self._retry_task.cancel()
            self._retry_task = None

        client, self._client = self._client, None
        was_connected = self.is_connected
        self.state = ConnectionState.DISCONNECTED

        if client is not None:
            await self._run(_close_quietly, client)

        if was_connected:
            logger.info("RCON stopped")

    async def send(self, command: str) -> str:
        """
        Send a console command.

        Args:
            command: Command without a leading slash.

        Returns:
            str: Raw reply text.

        Raises:
            RconNotConnectedError: If the connection is down. No connection
                attempt is made.
            RconTransportError: If the connection failed during the command.
        """
        if not self.is_connected:
            raise RconNotConnectedError()

        async with self._lock:
            client = self._client
            if client is None or not self.is_connected:
                raise RconNotConnectedError()

            try:
                response = await self._run(client.command, command)
            except (OSError, MCRconException) as e:
                logger.warning(f"RCON command '{command}' failed: {e}")
                await self._handle_connection_lost(client)
                raise RconTransportError(str(e)) from e

        logger.debug(f"RCON '{command}' response: {response}")
        return response

    async def get_player_list(self) -> Optional[PlayerList]:
        """
        Get online players.

        Returns:
            Optional[PlayerList]: Players, or None if RCON is down or the
                reply could not be parsed.
        """
        try:
            resp = await self.send("list")
        except RconError as e:
            logger.info(f"Could not query player list: {e}")
            return None

        players = parse_player_list(resp)
        if players is None:
            logger.warning(f"Could not parse player list from: {resp}")
        return players

    async def _handle_connection_lost(self, client: MCRcon) -> None:
        self.state = ConnectionState.DISCONNECTED
        self._client = None
        await self._run(_close_quietly, client)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._stopped:
            return
        if self._retry_task is not None and not self._retry_task.done():
            return

        delay = self._next_delay
        self._next_delay = min(self._next_delay * 2, self.max_retry_delay)
        logger.info(f"Reconnecting to RCON in {delay:.0f} seconds")
        self._retry_task = asyncio.create_task(self._reconnect_later(delay))

    async def _reconnect_later(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._retry_task = None
        if not self._stopped:
            await self.launch()


def _shutdown_socket(client: MCRcon) -> None:
    sock = getattr(client, "socket", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass


def _close_quietly(client: MCRcon) -> None:
    # mcrcon leaves the socket open when the login is rejected
    try:
        client.disconnect()
    except OSError as e:
        logger.debug(f"Ignoring error while closing RCON: {e}")
