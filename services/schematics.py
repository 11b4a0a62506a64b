"""
Schematic file management for the server's WorldEdit directory.
"""
import asyncio
import logging
from pathlib import Path
from typing import List, Union

import aiofiles
import requests
from aiofiles import os as aioos

logger = logging.getLogger("mc-bridge.schematics")

SCHEMATIC_SUFFIXES = (".schematic", ".schem")
DOWNLOAD_TIMEOUT = 30


def is_schematic_filename(filename: str) -> bool:
    """Check whether ``filename`` looks like a schematic file."""
    return filename.lower().endswith(SCHEMATIC_SUFFIXES)


def _download(url: str) -> bytes:
    resp = requests.get(url, timeout=DOWNLOAD_TIMEOUT)
    resp.raise_for_status()
    return resp.content


class SchematicStore:
    """Lists, stores and deletes schematic files in one directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path_for(self, filename: str) -> Path:
        """
        Resolve ``filename`` inside the schematic directory.

        Raises:
            ValueError: If the name is not a plain schematic file name.
        """
        if not filename or Path(filename).name != filename or filename in (".", ".."):
            raise ValueError(f"Invalid file name: {filename}")
        if not is_schematic_filename(filename):
            raise ValueError(f"Not a schematic file: {filename}")
        return self.directory / filename

    async def list(self) -> List[str]:
        """
        List stored schematic files.

        Returns:
            List[str]: Sorted file names, empty if the directory is missing.
        """
        try:
            names = await aioos.listdir(self.directory)
        except FileNotFoundError:
            return []
        return sorted(name for name in names if is_schematic_filename(name))

    async def save(self, filename: str, content: bytes) -> Path:
        path = self._path_for(filename)
        await aioos.makedirs(self.directory, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(content)
        logger.info(f"Saved schematic {path} ({len(content)} bytes)")
        return path

    async def save_from_url(self, filename: str, url: str) -> Path:
        """
        Download a schematic and store it.

        Args:
            filename: Target file name.
            url: Download URL (a Discord attachment URL).

        Returns:
            Path: Written file.

        Raises:
            ValueError: If the file name is not acceptable.
            requests.RequestException: If the download failed.
            OSError: If the file could not be written.
        """
        self._path_for(filename)

        loop = asyncio.get_running_loop()
        content = await loop.run_in_executor(None, _download, url)
        return await self.save(filename, content)

    async def delete(self, filename: str) -> bool:
        """
        Delete a schematic file.

        Returns:
            bool: False if the file did not exist.

        Raises:
            ValueError: If the file name is not acceptable.
        """
        path = self._path_for(filename)
        try:
            await aioos.remove(path)
        except FileNotFoundError:
            return False

        logger.info(f"Deleted schematic {path}")
        return True
