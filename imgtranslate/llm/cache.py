"""Size-bounded LRU cache for translation results.

Keys are the call arguments joined with NUL. Joined keys up to 200
characters are used as-is; longer ones are replaced by their SHA-1 hex digest.
"""

from __future__ import annotations

import hashlib
import threading
from collections import OrderedDict
from typing import Any, Optional, Sequence

SIMPLE_KEY_THRESHOLD = 200
KEY_SEPARATOR = "\0"


def _stringify(arg: Any) -> str:
    if isinstance(arg, bool):
        return "true" if arg else "false"
    return str(arg)


def make_cache_key(args: Sequence[Any]) -> str:
    simple_key = KEY_SEPARATOR.join(_stringify(a) for a in args)
    if len(simple_key) <= SIMPLE_KEY_THRESHOLD:
        return simple_key
    return hashlib.sha1(simple_key.encode("utf-8")).hexdigest()


class TranslationCache:
    """LRU store of translated strings; `max_size <= 0` disables it."""

    def __init__(self, max_size: int = 1000):
        self.max_size = int(max_size)
        self._data: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.max_size > 0

    def __len__(self) -> int:
        return len(self._data)

    def get(self, args: Sequence[Any]) -> Optional[str]:
        if not self.enabled:
            return None
        key = make_cache_key(args)
        with self._lock:
            value = self._data.get(key)
            if value is not None:
                self._data.move_to_end(key)
            return value

    def set(self, result: str, args: Sequence[Any]) -> None:
        if not self.enabled:
            return
        key = make_cache_key(args)
        with self._lock:
            self._data[key] = result
            self._data.move_to_end(key)
            while len(self._data) > self.max_size:
                self._data.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
