"""
Async JSON file helpers shared by the file-backed store and cache.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import aiofiles

logger = logging.getLogger(__name__)


async def atomic_write_json(file_path: Path, data: Any) -> None:
    """
    Write JSON data to file atomically using temporary file and rename.

    Args:
        file_path: Path to write to
        data: Data to write as JSON
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = file_path.with_suffix(f"{file_path.suffix}.tmp")

    try:
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(data, indent=2, default=str))

        temp_path.replace(file_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


async def read_json(file_path: Path) -> Optional[Any]:
    """
    Read a JSON file.

    Returns:
        Parsed content, or None if the file is missing or empty

    Raises:
        json.JSONDecodeError: If the file holds invalid JSON
        UnicodeDecodeError: If the file is not UTF-8 text
    """
    if not file_path.exists():
        return None

    async with aiofiles.open(file_path, "r", encoding="utf-8") as f:
        content = await f.read()

    if not content.strip():
        return None
    return json.loads(content)


def backup_corrupted_file(file_path: Path) -> Optional[Path]:
    """Move a corrupted file aside for debugging and return its new path."""
    if not file_path.exists():
        return None

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_path = file_path.with_suffix(f".corrupted_{timestamp}{file_path.suffix}")

    try:
        file_path.rename(backup_path)
        logger.info(f"Backed up corrupted file to {backup_path}")
        return backup_path
    except OSError as e:
        logger.error(f"Failed to backup corrupted file: {e}")
        return None
