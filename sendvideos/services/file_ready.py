"""Wait until a freshly written file is no longer held by its writer."""
import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Optional

from ..errors import FileNotReadyError

logger = logging.getLogger(__name__)


def is_file_ready(path: Path) -> bool:
    """Non-destructive probe: renaming a file onto itself fails while it is locked."""
    try:
        os.rename(path, path)
        return True
    except OSError:
        return False


async def wait_until_ready(path: Path, interval: float = 1.5, timeout: Optional[float] = None) -> float:
    """
    Poll is_file_ready every `interval` seconds.

    The first probe happens after one interval, matching a recorder that is
    still finalizing the file. Returns the seconds waited; raises
    FileNotReadyError once `timeout` is exceeded (None waits forever).
    """
    started = time.monotonic()
    while True:
        await asyncio.sleep(interval)
        waited = time.monotonic() - started
        if await asyncio.to_thread(is_file_ready, path):
            logger.debug(f"[file] {path.name} accessible after {waited:.1f}s")
            return waited
        if timeout is not None and waited >= timeout:
            raise FileNotReadyError(path, waited)
        logger.debug(f"[file] {path.name} still locked, waiting...")
