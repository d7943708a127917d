# app/services/cache_service.py
import hashlib
import json
import logging
from typing import Any, Optional

from redis import RedisError
from redis.asyncio import Redis

from app.core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Redis | None = None


def get_redis_client() -> Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


class CacheService:
    """
    JSON key-value cache on top of Redis.

    The cache is never authoritative: a Redis error is logged and treated as a miss
    (get) or a no-op (set / delete). No locking around get-compute-set; two callers
    racing on the same key both compute and store equal values.
    """

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_client()
        return self._redis

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Dropping undecodable cache entry {key}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            await self.redis.set(key, json.dumps(value, default=str), ex=ttl_seconds)
        except RedisError as e:
            logger.warning(f"Cache set failed for {key}: {e}")

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self.redis.delete(*keys)
        except RedisError as e:
            logger.warning(f"Cache delete failed for {keys}: {e}")

    async def health_check(self) -> dict:
        try:
            await self.redis.set("health-check", "ok", ex=10)
            value = await self.redis.get("health-check")
            await self.redis.delete("health-check")
        except RedisError as e:
            return {"status": "unhealthy", "message": str(e)}
        if value != "ok":
            return {"status": "unhealthy", "message": "cache read/write mismatch"}
        return {"status": "healthy"}

    # ---- key builders ----

    @staticmethod
    def ai_evaluation_key(submit_text: str, category: str) -> str:
        # title is intentionally not part of the key
        category = getattr(category, "value", category)
        digest = hashlib.sha256(f"{category}\0{submit_text}".encode("utf-8")).hexdigest()
        return f"ai-eval:{digest}"

    @staticmethod
    def submission_key(submission_id: int) -> str:
        return f"submission:{submission_id}"

    @staticmethod
    def student_submissions_key(student_id: int) -> str:
        return f"student-submissions:{student_id}"

    @staticmethod
    def file_url_key(blob_name: str) -> str:
        return f"file-url:{blob_name}"

    async def invalidate_submission(self, submission_id: int, student_id: int) -> None:
        await self.delete(
            self.submission_key(submission_id),
            self.student_submissions_key(student_id),
        )
