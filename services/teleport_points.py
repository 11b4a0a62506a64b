"""
Teleport point storage.

Points are kept in a JSON document grouped by dimension::

    {"overworld": {"spawn": {"dimension": "overworld", "name": "spawn", "coordinate": [0, 64, 0]}}, ...}

Every change also rewrites a ``.mcfunction`` file that prints the points as
clickable teleport links in game, and reloads the server so it picks them up.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import aiofiles
from aiofiles import os as aioos

from errors import RconError, StoreError
from services.rcon import RCONService

logger = logging.getLogger("mc-bridge.teleport-points")

DIMENSIONS: Tuple[str, ...] = ("overworld", "the_nether", "the_end")

DIMENSION_COLORS = {
    "overworld": "green",
    "the_nether": "red",
    "the_end": "light_purple",
}

Coordinate = Tuple[int, int, int]
TeleportDocument = Dict[str, Dict[str, dict]]


@dataclass(frozen=True)
class TeleportPoint:
    dimension: str
    name: str
    coordinate: Coordinate

    def to_dict(self) -> dict:
        return {
            "dimension": self.dimension,
            "name": self.name,
            "coordinate": list(self.coordinate),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TeleportPoint":
        x, y, z = data["coordinate"]
        return cls(dimension=data["dimension"], name=data["name"], coordinate=(int(x), int(y), int(z)))


def default_document() -> TeleportDocument:
    return {dimension: {} for dimension in DIMENSIONS}


def iter_points(document: TeleportDocument) -> List[TeleportPoint]:
    """
    Flatten a document into points, dimension order first, then by name.

    Entries that do not have the shape of a point are skipped.
    """
    points = []
    for dimension in DIMENSIONS:
        for name in sorted(document.get(dimension, {})):
            try:
                points.append(TeleportPoint.from_dict(document[dimension][name]))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed teleport point {dimension}/{name}: {e!r}")
    return points


def _tellraw(components) -> str:
    return "tellraw @s " + json.dumps(components, ensure_ascii=False)


def build_teleport_function(document: TeleportDocument) -> str:
    """
    Render the in-game teleport menu.

    Each point becomes a ``tellraw`` line whose name runs
    ``execute in minecraft:<dimension> run tp @s x y z`` when clicked.
    """
    lines = [_tellraw({"text": "===== Teleport points =====", "color": "gold"})]

    for point in iter_points(document):
        x, y, z = point.coordinate
        command = f"/execute in minecraft:{point.dimension} run tp @s {x} {y} {z}"
        lines.append(_tellraw([
            {"text": f"[{point.dimension}] ", "color": DIMENSION_COLORS[point.dimension]},
            {
                "text": point.name,
                "underlined": True,
                "clickEvent": {"action": "run_command", "value": command},
                "hoverEvent": {"action": "show_text", "contents": f"{x} {y} {z}"},
            },
        ]))

    return "\n".join(lines) + "\n"


class TeleportPointStore:
    """
    CRUD over the teleport point document.

    Changes are serialized by a lock owned by the store, and the document is
    replaced atomically, so concurrent commands never see a half written file.
    """

    def __init__(
        self,
        path: Union[str, Path],
        function_path: Union[str, Path],
        rcon_service: Optional[RCONService] = None,
    ):
        """
        Initialize the store.

        Args:
            path: JSON document location.
            function_path: Generated ``.mcfunction`` location.
            rcon_service: Used to reload the server after a change.
        """
        self.path = Path(path)
        self.function_path = Path(function_path)
        self.rcon_service = rcon_service
        self._lock = asyncio.Lock()

    async def read(self) -> TeleportDocument:
        """
        Read the document.

        A missing or corrupt file is replaced by the empty default document.
        """
        async with self._lock:
            return await self._read()

    async def list(self) -> List[TeleportPoint]:
        return iter_points(await self.read())

    async def add(self, dimension: str, name: str, coordinate: Coordinate) -> bool:
        """
        Insert or update a point.

        Returns:
            bool: True if the point is new, False if an existing one was updated.

        Raises:
            ValueError: If the dimension is unknown.
            StoreError: If the files could not be written.
        """
        self._check_dimension(dimension)

        async with self._lock:
            document = await self._read()

            inserted = name not in document[dimension]
            document[dimension][name] = TeleportPoint(dimension, name, tuple(coordinate)).to_dict()

            await self._save(document)

        logger.info(f"{'Added' if inserted else 'Updated'} teleport point {dimension}/{name} at {coordinate}")
        await self._reload()
        return inserted

    async def remove(self, dimension: str, name: str) -> bool:
        """
        Delete a point.

        Returns:
            bool: False if the point did not exist.

        Raises:
            ValueError: If the dimension is unknown.
            StoreError: If the files could not be written.
        """
        self._check_dimension(dimension)

        async with self._lock:
            document = await self._read()

            if name not in document[dimension]:
                return False

            del document[dimension][name]
            await self._save(document)

        logger.info(f"Removed teleport point {dimension}/{name}")
        await self._reload()
        return True

    @staticmethod
    def _check_dimension(dimension: str) -> None:
        if dimension not in DIMENSIONS:
            raise ValueError(f"Unknown dimension: {dimension}")

    async def _read(self) -> TeleportDocument:
        # Caller holds self._lock
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                document = json.loads(await f.read())
            if not isinstance(document, dict):
                raise ValueError("document is not an object")
            for dimension in DIMENSIONS:
                if not isinstance(document.setdefault(dimension, {}), dict):
                    raise ValueError(f"dimension '{dimension}' is not an object")
            return document
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {self.path} ({e}), writing an empty document")

        document = default_document()
        try:
            await _write_atomic(self.path, json.dumps(document, ensure_ascii=False, indent=4))
        except OSError as e:
            logger.error(f"Could not write {self.path}: {e}")
        return document

    async def _save(self, document: TeleportDocument) -> None:
        try:
            await _write_atomic(self.path, json.dumps(document, ensure_ascii=False, indent=4))
            await _write_atomic(self.function_path, build_teleport_function(document))
        except OSError as e:
            raise StoreError(f"Could not save teleport points: {e}") from e

    async def _reload(self) -> None:
        if self.rcon_service is None:
            return

        try:
            await self.rcon_service.send("reload")
        except RconError as e:
            logger.warning(f"Teleport points saved but the server was not reloaded: {e}")


async def _write_atomic(path: Path, text: str) -> None:
    """Write ``text`` to a sibling temporary file, then rename it over ``path``."""
    await aioos.makedirs(path.parent, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(text)
        await aioos.replace(tmp_path, path)
    except OSError:
        try:
            await aioos.remove(tmp_path)
        except OSError:
            pass
        raise
