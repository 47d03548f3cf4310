"""Dotenv layer of the variable merge.

An environment may point at a ``.env`` file relative to the collection root.
``python-dotenv`` splits the file into bindings and recognizes comments, but
each value is taken from the binding's raw text: only one layer of matching
surrounding quotes is removed. Escape sequences, inline ``#`` tails and
``${VAR}`` references reach the merge exactly as written, and ``os.environ``
is never touched.
"""

from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path

from dotenv.parser import parse_stream

logger = logging.getLogger(__name__)


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_dotenv(text: str) -> dict[str, str]:
    """Parse dotenv text into a mapping.

    Blank lines and ``#`` comments are skipped, and lines without ``=``
    are ignored.
    """
    values: dict[str, str] = {}
    for binding in parse_stream(io.StringIO(text)):
        if binding.error or binding.key is None or binding.value is None:
            continue
        _, sep, raw_value = binding.original.string.partition("=")
        if not sep:
            continue
        values[binding.key] = _strip_quotes(raw_value.strip())
    return values


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("Dotenv file %s not found, skipping", path)
        return None
    except OSError as exc:
        logger.warning("Failed to read dotenv file", extra={"path": str(path), "error": str(exc)})
        return None


async def load_dotenv_file(root_dir: Path, relative_path: str) -> dict[str, str]:
    """Load the dotenv file at ``relative_path`` under ``root_dir``.

    A missing or unreadable file contributes nothing to the merge.
    """
    path = Path(root_dir) / relative_path
    loop = asyncio.get_running_loop()
    text = await loop.run_in_executor(None, _read_text, path)
    if text is None:
        return {}
    values = parse_dotenv(text)
    logger.debug("Loaded %d dotenv entries from %s", len(values), path)
    return values


__all__ = ["load_dotenv_file", "parse_dotenv"]
