"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .redis_client import close_redis, get_cache_stats, get_redis

__all__ = ["close_redis", "get_cache_stats", "get_redis"]
