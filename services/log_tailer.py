"""
Incremental reader for the Minecraft server log file.

The tailer polls ``logs/latest.log`` instead of relying on filesystem
notifications, reads only the bytes appended since the previous tick and
hands every parsed event to a sink coroutine.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

import aiofiles
from aiofiles import os as aioos
from discord.ext import tasks

from services.log_parser import LogEvent, parse_log_line

logger = logging.getLogger("mc-bridge.log-tailer")

POLL_INTERVAL_SECONDS = 0.25

LogEventSink = Callable[[LogEvent], Awaitable[None]]


@dataclass
class LogPosition:
    """Cursor into the watched file."""

    byte_offset: int = 0
    last_modified_ms: float = 0.0


class LogTailer:
    """Polls a growing log file and emits one event per parsed line."""

    def __init__(
        self,
        log_path: Union[str, Path],
        sink: Optional[LogEventSink] = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ):
        """
        Initialize the tailer.

        Args:
            log_path: Path of the log file to follow.
            sink: Coroutine called with every parsed event, in file order.
            poll_interval: Seconds between two polls.
        """
        self.log_path = Path(log_path)
        self.position = LogPosition()
        self._sink = sink
        # Bytes after the last newline, completed by the next read
        self._partial = b""

        self._poll_task = tasks.loop(seconds=poll_interval)(self.poll_once)

    def set_sink(self, sink: LogEventSink) -> None:
        self._sink = sink

    @property
    def is_running(self) -> bool:
        return self._poll_task.is_running()

    def start(self) -> None:
        """Record the current end of the file and start polling."""
        if self._poll_task.is_running():
            logger.warning(f"Already tailing {self.log_path}")
            return

        try:
            stat = os.stat(self.log_path)
            self.position = LogPosition(
                byte_offset=stat.st_size,
                last_modified_ms=stat.st_mtime_ns / 1_000_000,
            )
            logger.info(f"Tailing {self.log_path} from offset {stat.st_size}")
        except FileNotFoundError:
            self.position = LogPosition()
            logger.info(f"{self.log_path} not found, will read from the beginning when created")

        self._partial = b""
        self._poll_task.start()

    def stop(self) -> None:
        """Stop polling. Does nothing if the tailer is not running."""
        if not self._poll_task.is_running():
            return

        self._poll_task.cancel()
        logger.info(f"Stopped tailing {self.log_path}")

    async def poll_once(self) -> None:
        """
        Run one polling tick.

        A size below the current offset means the file was truncated or
        rotated, so reading restarts at offset 0. New bytes are read only
        when the modification time advanced and the file grew. Stat and read
        errors are left for the next tick to retry.
        """
        try:
            stat = await aioos.stat(self.log_path)
        except OSError as e:
            logger.debug(f"Could not stat {self.log_path}: {e}")
            return

        size = stat.st_size
        modified_ms = stat.st_mtime_ns / 1_000_000

        if size < self.position.byte_offset:
            logger.info(f"{self.log_path} was truncated or rotated, reading from the beginning")
            self.position.byte_offset = 0
            self._partial = b""

        if modified_ms <= self.position.last_modified_ms or size <= self.position.byte_offset:
            return

        try:
            async with aiofiles.open(self.log_path, "rb") as f:
                await f.seek(self.position.byte_offset)
                data = await f.read(size - self.position.byte_offset)
        except OSError as e:
            logger.debug(f"Could not read {self.log_path}: {e}")
            return

        self.position.last_modified_ms = modified_ms
        self.position.byte_offset += len(data)

        *lines, self._partial = (self._partial + data).split(b"\n")
        for raw in lines:
            line = raw.decode("utf-8", errors="replace").rstrip("\r")
            if not line.strip():
                continue

            event = parse_log_line(line)
            if event is not None:
                await self._emit(event)

    async def _emit(self, event: LogEvent) -> None:
        if self._sink is None:
            return

        try:
            await self._sink(event)
        except Exception:
            logger.exception(f"Log event handler failed for {event}")
