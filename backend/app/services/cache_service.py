"""
Redis read-through cache for computed availability.

CACHING STRATEGY
================

What we cache:
  - The available slots for one (business, date, service, duration) query
  - Key: "{prefix}:{business_id}:{YYYY-MM-DD}:{service_id|all}:{duration|default}"
  - TTL: AVAILABILITY_CACHE_TTL (5 minutes)

Invalidation:
  A single booking can change the slots of every service/duration variant
  for its business and date, so invalidation is per (business, date), not
  per key. Every `put` also records its key in an index set:

      "{prefix}:index:{business_id}:{YYYY-MM-DD}"  ->  {key, key, ...}

  `invalidate(business_id, date)` deletes the indexed keys and removes them
  from the index. No keyspace SCAN is involved, so the cost is proportional
  to the number of variants cached for that day.

Stale writes:
  A reader computes slots from bookings it loaded earlier. If a booking is
  created or cancelled and invalidated in between, writing that answer
  would pin stale slots for a whole TTL. Each (business, date) therefore
  has a generation counter:

      "{prefix}:gen:{business_id}:{YYYY-MM-DD}"  ->  INCR on every invalidate

  Readers take `generation()` before loading bookings and pass it to
  `put`, which WATCHes the counter and writes in MULTI/EXEC only if it is
  unchanged. Invalidate bumps the counter before reading the index, so a
  write either lands before the bump (and is deleted) or fails its WATCH.

Failure policy:
  The cache is never authoritative. Any Redis or decoding error is logged,
  counted, and treated as a miss (get) or a no-op (put/invalidate).
"""

import json
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Optional, Sequence

from redis.exceptions import WatchError

from app.core.logging import get_logger
from app.core.metrics import record_cache_operation
from app.infrastructure.redis_client import get_redis
from app.schemas.availability import TimeSlot

logger = get_logger(__name__)

# Outlives any availability computation by a wide margin.
GENERATION_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class AvailabilityKey:
    business_id: uuid.UUID
    day: date
    service_id: Optional[str] = None
    duration: Optional[int] = None

    def cache_key(self, prefix: str) -> str:
        return (
            f"{prefix}:{self.business_id}:{self.day.isoformat()}:"
            f"{self.service_id or 'all'}:{self.duration or 'default'}"
        )


def index_key(prefix: str, business_id: uuid.UUID, day: date) -> str:
    return f"{prefix}:index:{business_id}:{day.isoformat()}"


def generation_key(prefix: str, business_id: uuid.UUID, day: date) -> str:
    return f"{prefix}:gen:{business_id}:{day.isoformat()}"


class AvailabilityCache:
    def __init__(
        self,
        client_factory: Callable[[], Awaitable] = get_redis,
        ttl_seconds: int = 300,
        prefix: str = "availability",
    ) -> None:
        self._client_factory = client_factory
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    async def get(self, key: AvailabilityKey) -> Optional[list[TimeSlot]]:
        cache_key = key.cache_key(self.prefix)
        try:
            client = await self._client_factory()
            if not client:
                return None

            data = await client.get(cache_key)
            if data is None:
                record_cache_operation("get", "miss")
                logger.debug("availability_cache_miss", key=cache_key)
                return None

            slots = [TimeSlot.model_validate(item) for item in json.loads(data)]
            record_cache_operation("get", "hit")
            logger.debug("availability_cache_hit", key=cache_key, slots=len(slots))
            return slots
        except Exception as e:
            record_cache_operation("get", "error")
            logger.warning("availability_cache_error", operation="get", key=cache_key, error=str(e))
            return None

    async def generation(self, business_id: uuid.UUID, day: date) -> Optional[int]:
        """Invalidation counter for the business and date. None when Redis is unavailable."""
        gen_key = generation_key(self.prefix, business_id, day)
        try:
            client = await self._client_factory()
            if not client:
                return None
            return int(await client.get(gen_key) or 0)
        except Exception as e:
            record_cache_operation("generation", "error")
            logger.warning("availability_cache_error", operation="generation", key=gen_key, error=str(e))
            return None

    async def put(
        self,
        key: AvailabilityKey,
        slots: Sequence[TimeSlot],
        ttl_seconds: Optional[int] = None,
        generation: Optional[int] = None,
    ) -> bool:
        """
        Store `slots` under `key`. With `generation`, the write only happens
        if no invalidation ran since that generation was read.

        Returns True when the entry was written.
        """
        cache_key = key.cache_key(self.prefix)
        ttl = ttl_seconds or self.ttl_seconds
        try:
            client = await self._client_factory()
            if not client:
                return False

            payload = json.dumps([slot.model_dump(mode="json") for slot in slots])
            day_index = index_key(self.prefix, key.business_id, key.day)

            async with client.pipeline(transaction=True) as pipe:
                if generation is not None:
                    gen_key = generation_key(self.prefix, key.business_id, key.day)
                    await pipe.watch(gen_key)
                    if int(await pipe.get(gen_key) or 0) != generation:
                        self._skip_stale(cache_key, generation)
                        return False
                    pipe.multi()
                pipe.setex(cache_key, ttl, payload)
                pipe.sadd(day_index, cache_key)
                pipe.expire(day_index, ttl)
                await pipe.execute()

            record_cache_operation("put", "ok")
            logger.debug("availability_cache_set", key=cache_key, ttl=ttl)
            return True
        except WatchError:
            self._skip_stale(cache_key, generation)
            return False
        except Exception as e:
            record_cache_operation("put", "error")
            logger.warning("availability_cache_error", operation="put", key=cache_key, error=str(e))
            return False

    async def invalidate(self, business_id: uuid.UUID, day: date) -> int:
        """Drop every cached variant for the business and date. Returns keys deleted."""
        day_index = index_key(self.prefix, business_id, day)
        gen_key = generation_key(self.prefix, business_id, day)
        try:
            client = await self._client_factory()
            if not client:
                return 0

            # Bump first: a put still holding the old generation fails its WATCH.
            async with client.pipeline(transaction=True) as pipe:
                pipe.incr(gen_key)
                pipe.expire(gen_key, GENERATION_TTL_SECONDS)
                pipe.smembers(day_index)
                _, _, members = await pipe.execute()

            keys = list(members)
            if keys:
                # SREM rather than DEL of the index, so entries written
                # under the new generation stay indexed.
                async with client.pipeline(transaction=True) as pipe:
                    pipe.delete(*keys)
                    pipe.srem(day_index, *keys)
                    await pipe.execute()

            record_cache_operation("invalidate", "ok")
            logger.info(
                "availability_cache_invalidated",
                business_id=str(business_id),
                date=day.isoformat(),
                keys_deleted=len(keys),
            )
            return len(keys)
        except Exception as e:
            record_cache_operation("invalidate", "error")
            logger.warning(
                "availability_cache_error",
                operation="invalidate",
                business_id=str(business_id),
                date=day.isoformat(),
                error=str(e),
            )
            return 0

    def _skip_stale(self, cache_key: str, generation: Optional[int]) -> None:
        record_cache_operation("put", "stale")
        logger.info("availability_cache_stale_write_skipped", key=cache_key, generation=generation)
