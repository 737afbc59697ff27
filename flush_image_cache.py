#!/usr/bin/env python3
"""
Delete every cached JSON-LD image list.

Run after bulk changes to static images; the next build recomputes the image
lists of all articles and pages.
"""

import logging
import sys
from pathlib import Path

sys.path[:0] = [str(Path(__file__).parent / "src"), str(Path(__file__).parent / "plugins")]

from cache import CacheService  # noqa: E402
from jsonld.converter import IMAGE_CACHE_NAMESPACE, flush_cache  # noqa: E402
from pelicanconf import setup_logging  # noqa: E402
from tools import load_redis_settings  # noqa: E402

_log = logging.getLogger(__name__)


def main():
    setup_logging()
    cache = CacheService(IMAGE_CACHE_NAMESPACE, **load_redis_settings())
    entries = cache.get_stats().get("entries", 0)

    if flush_cache(cache):
        _log.info(f"JSON-LD image cache flushed ({entries} entries)")
        return 0

    _log.error("JSON-LD image cache not flushed (is Redis running?)")
    return 1


if __name__ == "__main__":
    sys.exit(main())
