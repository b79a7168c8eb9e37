"""
Async file helpers for export artifacts.

File writes are offloaded with ``asyncio.to_thread`` so exporting a large
run result never stalls the request loops of other runs.
"""

import asyncio
from pathlib import Path

from src.soak.utils.logging import get_logger

logger = get_logger(__name__)


class AsyncFileIO:
    """Non-blocking file I/O operations for async contexts."""

    @staticmethod
    async def write_text(path: Path | str, content: str) -> Path:
        """Write ``content`` to ``path``, creating parent directories."""
        target = Path(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp = target.with_suffix(target.suffix + ".tmp")
            tmp.write_text(content, encoding="utf-8")
            tmp.replace(target)

        await asyncio.to_thread(_write)
        logger.debug(f"Wrote {len(content)} characters to {target}")
        return target
