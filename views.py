"""
Server-rendered view cache

Page payloads are built once per path and reused until a mutation
revalidates that path. A page whose build raised is never stored, and a
page built across a revalidation of its path is returned but not stored.
"""

import logging
import threading
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)

HOME = "/"
MEMBER_DASHBOARD = "/dashboard"
PASTOR_DASHBOARD = "/pastor/dashboard"
PASTOR_MEMBERS = "/pastor/dashboard/members"
PASTOR_CREATIONS = "/pastor/dashboard/creations"
PASTOR_CONTRIBUTIONS = "/pastor/dashboard/contributions"


class ViewCache:
    def __init__(self):
        self._pages: Dict[str, Any] = {}
        self._generations: Dict[str, int] = {}
        self._lock = threading.Lock()

    def render(self, path: str, build: Callable[[], Any]) -> Any:
        with self._lock:
            if path in self._pages:
                return self._pages[path]
            generation = self._generations.get(path, 0)
        page = build()
        with self._lock:
            if self._generations.get(path, 0) == generation:
                self._pages[path] = page
            else:
                logger.debug("Not caching %s: revalidated while building", path)
        return page

    def is_cached(self, path: str) -> bool:
        with self._lock:
            return path in self._pages

    def revalidate(self, *paths: str) -> None:
        with self._lock:
            for path in paths:
                self._pages.pop(path, None)
                self._generations[path] = self._generations.get(path, 0) + 1
        logger.debug("Revalidated %s", ", ".join(paths))
