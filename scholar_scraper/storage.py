"""Result storage with async I/O - non-blocking JSON-lines streaming"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, Optional, Tuple

import aiofiles
import orjson
from loguru import logger


def _to_record(item: Any) -> Dict[str, Any]:
    if hasattr(item, "to_dict"):
        return item.to_dict()
    return item


class AsyncStreamingStorage:
    """
    Async streaming storage that never blocks the event loop.
    Uses aiofiles for async I/O and orjson for serialization.
    One JSON document per line, appended as items arrive.
    """

    def __init__(self, output_dir: Path):
        """
        Args:
            output_dir: Base output directory
        """
        self.output_dir = output_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Output directory ready: {output_dir}")

    def output_path(self, label: str, timestamp: Optional[str] = None) -> Path:
        timestamp = timestamp or datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        safe_label = "".join(c if c.isalnum() or c in "-_" else "_" for c in label).strip("_")
        return self.output_dir / f"{safe_label or 'results'}_{timestamp}.jsonl"

    async def append_record(self, path: Path, item: Any) -> int:
        """Append one record; returns the number of bytes written"""
        line = orjson.dumps(_to_record(item), option=orjson.OPT_NON_STR_KEYS) + b"\n"
        async with aiofiles.open(path, "ab") as f:
            await f.write(line)
        return len(line)

    async def save_records(self, path: Path, items: Iterable[Any]) -> Tuple[int, int]:
        """Write ``items`` to ``path`` (replacing it); returns (count, bytes)"""
        count = 0
        size = 0
        async with aiofiles.open(path, "wb") as f:
            for item in items:
                line = orjson.dumps(_to_record(item), option=orjson.OPT_NON_STR_KEYS) + b"\n"
                await f.write(line)
                count += 1
                size += len(line)
        logger.debug(f"💾 Saved {count} records to {path.name} ({size/1024:.1f}KB)")
        return count, size


async def save_results_streaming(
    items: AsyncIterator[Any],
    output_dir: Path,
    label: str,
    limit: int = 0,
    timestamp: Optional[str] = None,
) -> Tuple[Path, int]:
    """
    Drain an async iterator to a JSON-lines file, one record at a time.

    Records already written stay on disk if the iterator raises part way.

    Args:
        items: Async iterator of records (dataclasses with to_dict, or dicts)
        output_dir: Output directory
        label: File name prefix
        limit: Stop after this many records (0 = no limit)
        timestamp: Optional timestamp string for the file name

    Returns:
        Tuple of (output_file_path, num_records)
    """
    storage = AsyncStreamingStorage(output_dir)
    path = storage.output_path(label, timestamp)
    count = 0
    total_bytes = 0

    async for item in items:
        total_bytes += await storage.append_record(path, item)
        count += 1
        if limit and count >= limit:
            break

    logger.success(f"💾 Saved {count} records to {path} ({total_bytes/1024:.1f}KB)")
    return path, count
