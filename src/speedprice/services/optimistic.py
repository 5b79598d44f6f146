from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def apply_optimistic(
    apply: Callable[[], object],
    commit: Callable[[], Awaitable[T]],
    revert: Callable[[], Awaitable[object]],
) -> T:
    """
    Applies a tentative change, then confirms it with `commit` or undoes it with `revert`.

    The commit error is re-raised after reverting so the caller can inform the user.
    """
    apply()
    try:
        return await commit()
    except Exception:
        logger.warning("Optimistic change rejected, reverting", exc_info=True)
        await revert()
        raise
