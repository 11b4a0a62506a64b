"""
Parser for Minecraft server log lines.

Turns one line of ``logs/latest.log`` into a typed event::

    >>> parse_log_line("[12:00:01] [Server thread/INFO]: <Alice> hello")
    PlayerChat(name='Alice', message='hello')

Lines that are not events (or not log lines at all) give ``None``.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

_LINE_RE = re.compile(r"^\[\d{2}:\d{2}:\d{2}\] \[[^\]]*\]: (.*)$")
_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")

_CHAT_RE = re.compile(r"^(?:\[Not Secure\] )?<([^>]*)> (.*)$")
_LOGIN_RE = re.compile(r"^(.*) joined the game$")
_LOGOUT_RE = re.compile(r"^(.*) left the game$")
_SERVER_START_RE = re.compile(r'^Done \([^)]*\)! For help, type "help"$')
_SERVER_STOP_RE = re.compile(r"^Stopping the server$")


class PlayerActionKind(Enum):
    LOGIN = "login"
    LOGOUT = "logout"


class ServerLifecycleKind(Enum):
    START = "start"
    STOP = "stop"


@dataclass(frozen=True)
class PlayerChat:
    name: str
    message: str


@dataclass(frozen=True)
class PlayerAction:
    name: str
    kind: PlayerActionKind


@dataclass(frozen=True)
class ServerLifecycle:
    kind: ServerLifecycleKind


LogEvent = Union[PlayerChat, PlayerAction, ServerLifecycle]


def parse_log_body(body: str) -> Optional[LogEvent]:
    """
    Classify the message part of a log line (after the ``[time] [thread]:`` prefix).

    Patterns are tried in order (chat, login, logout, start, stop) and the
    first match wins.
    """
    m = _CHAT_RE.match(body)
    if m:
        return PlayerChat(name=m.group(1), message=m.group(2))

    m = _LOGIN_RE.match(body)
    if m:
        return PlayerAction(name=m.group(1), kind=PlayerActionKind.LOGIN)

    m = _LOGOUT_RE.match(body)
    if m:
        return PlayerAction(name=m.group(1), kind=PlayerActionKind.LOGOUT)

    if _SERVER_START_RE.match(body):
        return ServerLifecycle(kind=ServerLifecycleKind.START)

    if _SERVER_STOP_RE.match(body):
        return ServerLifecycle(kind=ServerLifecycleKind.STOP)

    return None


def parse_log_line(line: str) -> Optional[LogEvent]:
    """
    Parse a single raw log line.

    Args:
        line: One line of the server log, with or without its line ending.

    Returns:
        Optional[LogEvent]: The event, or None if the line is not one.
    """
    line = _ANSI_RE.sub("", line.rstrip("\r\n"))
    if not line:
        return None

    m = _LINE_RE.match(line)
    if not m:
        return None

    return parse_log_body(m.group(1))
