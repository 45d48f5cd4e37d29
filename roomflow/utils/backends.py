"""URL-keyed backend caching shared by the repository and ledger factories."""

from __future__ import annotations

import logging
from typing import Callable, Generic, Optional, TypeVar

from ..config import RoomflowConfig, load_config

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackendCache(Generic[T]):
    """Keep the backend opened for the most recently requested URL.

    ``setting`` names the ``RoomflowConfig`` field holding the URL. A request
    for the URL the cached backend was opened with returns it; any other URL
    opens a new backend that replaces it.
    """

    def __init__(self, open_backend: Callable[[Optional[str]], T], setting: str) -> None:
        self._open = open_backend
        self._setting = setting
        self.instance: Optional[T] = None
        self.url: Optional[str] = None

    def get(self, url: Optional[str] = None, config: Optional[RoomflowConfig] = None) -> T:
        if url is None:
            if config is None and self.instance is not None:
                return self.instance
            url = getattr(config or load_config(), self._setting)
        if self.instance is None or url != self.url:
            backend = self._open(url)
            logger.debug(f"Opened {type(backend).__name__} for {self._setting}={url or '<memory>'}")
            self.instance, self.url = backend, url
        return self.instance

    def use(self, backend: T, url: Optional[str] = None) -> T:
        """Install ``backend`` as the cached instance for ``url``."""
        self.instance, self.url = backend, url
        return backend


__all__ = ["BackendCache"]
