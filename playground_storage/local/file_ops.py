"""
File operations for local storage.

Provides atomic read/write operations with:
- Atomic writes using temp file + rename
- Consistent StorageFailureError wrapping of OS and parse errors
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from ..exceptions import StorageFailureError


async def ensure_directory(path: Path) -> None:
    """Ensure directory exists, creating if necessary.

    Args:
        path: Directory path to ensure exists
    """
    try:
        await aiofiles.os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise StorageFailureError("create_directory", str(path), e) from e


async def read_json(path: Path) -> Any | None:
    """Read a JSON file.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON data or None if file doesn't exist or is empty
    """
    try:
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, encoding="utf-8") as f:
            content = await f.read()
            return json.loads(content) if content.strip() else None
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise StorageFailureError("parse_json", str(path), e) from e
    except OSError as e:
        raise StorageFailureError("read_json", str(path), e) from e


async def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON file atomically using temp file + rename.

    Args:
        path: Target path for JSON file
        data: Data to serialize as JSON
    """
    try:
        content = json.dumps(data, indent=2, default=_json_serializer)
    except (TypeError, ValueError) as e:
        raise StorageFailureError("serialize_json", str(path), e) from e
    await write_text_atomic(path, content)


async def read_text(path: Path) -> str | None:
    """Read a small text file, stripped. None if missing or blank."""
    try:
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, encoding="utf-8") as f:
            content = (await f.read()).strip()
            return content or None
    except UnicodeDecodeError as e:
        raise StorageFailureError("decode_text", str(path), e) from e
    except OSError as e:
        raise StorageFailureError("read_text", str(path), e) from e


async def write_text_atomic(path: Path, content: str) -> None:
    """Write a text file atomically using temp file + rename."""
    await ensure_directory(path.parent)

    temp_path: str | None = None
    try:
        fd, temp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".tmp_",
            suffix=path.suffix or ".txt",
        )
        os.close(fd)
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(content)
            await f.flush()
            os.fsync(f.fileno())

        # Atomic rename
        await aiofiles.os.replace(temp_path, path)
    except Exception as e:
        # Clean up temp file on error
        if temp_path is not None:
            try:
                await aiofiles.os.remove(temp_path)
            except OSError:
                pass
        raise StorageFailureError("write_file", str(path), e) from e


async def remove_file(path: Path) -> None:
    """Remove a file if it exists."""
    try:
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)
    except OSError as e:
        raise StorageFailureError("remove_file", str(path), e) from e


def _json_serializer(obj: Any) -> Any:
    """Custom JSON serializer for datetime objects."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
