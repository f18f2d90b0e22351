"""
Root bootstrap for apkclient.

Runs the acquisition pipeline in the order a client needs it:
- Initialize the database skeleton
- Install the keyring
- Write repositories and world
- Fetch every requested package (bounded concurrency) and hand each
  archive to the extraction/verification callback

Package resolution, signature checking and extraction are collaborators:
prepare_root() receives already-resolved packages and passes every
archive stream to a caller-supplied handler.

Invariants:
    - Steps run strictly in order; any failure aborts the bootstrap
    - A failing fetch cancels the fetches still in flight
    - Every stream handed to the handler is closed afterwards

How to change safely:
    - Keep retry policy out of here; errors propagate to the caller
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, BinaryIO, Callable, Dict, Iterable, Optional, Sequence

import json_log_formatter

from .apk import APK
from .cache import RepositoryPackage
from .config import Settings

logger = logging.getLogger(__name__)

PackageHandler = Callable[[RepositoryPackage, BinaryIO], Awaitable[None]]


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings.

    Args:
        settings: Client settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def prepare_root(
    apk: APK,
    *,
    repositories: Sequence[str],
    world: Iterable[str],
    key_files: Iterable[str] = (),
    packages: Iterable[RepositoryPackage] = (),
    handler: Optional[PackageHandler] = None,
) -> Dict[str, Any]:
    """Bootstrap an apk root and fetch its packages.

    Args:
        apk: Target database
        repositories: Repository URIs, in priority order
        world: Explicitly requested package names
        key_files: Key sources to trust
        packages: Resolved packages to fetch
        handler: Receives each package and its archive stream

    Returns:
        Package cache statistics

    Raises:
        ApkError: From whichever step failed first
    """
    apk.settings.log_config()

    apk.init_db()
    await apk.init_keyring(key_files)
    apk.set_repositories(repositories)
    apk.set_world(world)

    semaphore = asyncio.Semaphore(apk.settings.max_concurrent_fetches)

    async def fetch_one(pkg: RepositoryPackage) -> None:
        async with semaphore:
            stream = await apk.fetch_package(pkg)
        with stream:
            if handler is not None:
                await handler(pkg, stream)

    tasks = [asyncio.create_task(fetch_one(pkg)) for pkg in packages]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    stats = apk.cache.stats
    logger.info("Root prepared", extra={"packages": len(tasks), **stats})
    return stats
