"""Access-counter collaborator: how often each subdomain is hit."""

from .base_counter import BaseAccessCounter
from .redis_counter import RedisAccessCounter

__all__ = ["BaseAccessCounter", "RedisAccessCounter"]
