"""Response cache administration.

- GET    /cache/stats  - Entry counts and capacity
- DELETE /cache        - Drop every cached response
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from momento.api.deps import get_cache
from momento.cache import KeyedCache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cache", tags=["Cache"])


@router.get("/stats")
async def get_cache_stats(cache: KeyedCache = Depends(get_cache)) -> dict[str, int]:
    return cache.stats().to_dict()


@router.delete("")
async def clear_cache(cache: KeyedCache = Depends(get_cache)) -> dict[str, int | str]:
    removed = cache.clear()
    logger.info(f"Response cache cleared ({removed} entries)")
    return {"message": "Cache cleared", "removed": removed}
