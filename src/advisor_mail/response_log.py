import logging
import threading
from collections import deque
from typing import Deque, Dict, List, Optional

DEFAULT_MAX_RESPONSES_PER_CATEGORY = 100


class ResponseLog:
    """
    Bounded per-category buffer of raw API responses, kept for diagnostics.

    Each category holds at most ``max_responses_per_category`` entries; appending
    past that evicts the oldest entry of the same category only.
    """

    def __init__(self, max_responses_per_category: int = DEFAULT_MAX_RESPONSES_PER_CATEGORY) -> None:
        if max_responses_per_category < 1:
            raise ValueError("max_responses_per_category must be at least 1")
        self.max_responses_per_category = max_responses_per_category
        self._responses: Dict[str, Deque[str]] = {}
        self._lock = threading.Lock()

    def append(self, category: str, response: Optional[str]) -> None:
        """Record a raw response under the given category. ``None`` is ignored."""
        if response is None:
            return
        with self._lock:
            entries = self._responses.get(category)
            if entries is None:
                entries = deque(maxlen=self.max_responses_per_category)
                self._responses[category] = entries
            entries.append(response)
        logging.debug(f"Logged response under category '{category}'.")

    def get_responses(self, category: str) -> List[str]:
        """Return the stored responses for a category, oldest first."""
        with self._lock:
            return list(self._responses.get(category, ()))

    def get_latest(self, category: str) -> Optional[str]:
        with self._lock:
            entries = self._responses.get(category)
            return entries[-1] if entries else None

    def clear_category(self, category: str) -> None:
        with self._lock:
            self._responses.pop(category, None)

    def clear_all(self) -> None:
        with self._lock:
            self._responses.clear()

    def categories(self) -> List[str]:
        with self._lock:
            return list(self._responses.keys())
