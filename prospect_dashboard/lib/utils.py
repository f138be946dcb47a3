"""
Utility functions for the prospect dashboard.
Atomic file writes for the generated artifacts.

Usage:
    from prospect_dashboard.lib.utils import atomic_write_text, atomic_write_json
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from prospect_dashboard.lib.errors import OutputWriteError

logger = logging.getLogger(__name__)


def atomic_write_text(content: str, file_path: str | Path) -> Path:
    """
    Write text to file atomically using temp file + rename.
    A reader never sees a half-written dashboard; a failed run leaves the
    previous version in place.

    Args:
        content: Text to write (UTF-8).
        file_path: Target file path.

    Returns:
        The target path.

    Raises:
        OutputWriteError: the file could not be written.
    """
    file_path = Path(file_path)
    temp_path = file_path.with_suffix(file_path.suffix + ".tmp")

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(content)

        os.replace(temp_path, file_path)
        logger.debug("Atomically wrote %d characters to %s", len(content), file_path)
        return file_path

    except OSError as e:
        logger.error("Failed to write %s: %s", file_path, e)
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                logger.debug("Could not remove temp file %s", temp_path)
        raise OutputWriteError(str(file_path), e) from e


def atomic_write_json(data: Dict[str, Any], file_path: str | Path, indent: int = 2) -> Path:
    """Serialize *data* as JSON and write it atomically."""
    content = json.dumps(data, ensure_ascii=False, indent=indent, default=str)
    return atomic_write_text(content, file_path)
