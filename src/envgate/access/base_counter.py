from abc import ABC, abstractmethod
from datetime import timedelta


class BaseAccessCounter(ABC):
    """Source of per-subdomain request counts."""

    @abstractmethod
    async def count(self, subdomain: str, window: timedelta) -> int:
        """Return hits to ``subdomain`` during the last ``window``.

        Raises ``AccessCounterError`` when the count cannot be determined.
        """
        pass
