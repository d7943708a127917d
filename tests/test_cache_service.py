import asyncio

from redis import RedisError

from app.models.enums import SubmissionCategory
from app.services.cache_service import CacheService


class BrokenRedis:
    async def get(self, key):
        raise RedisError("connection refused")

    async def set(self, key, value, ex=None):
        raise RedisError("connection refused")

    async def delete(self, *keys):
        raise RedisError("connection refused")


def test_values_round_trip_as_json(cache):
    asyncio.run(cache.set("k", {"a": [1, 2]}, 30))
    assert asyncio.run(cache.get("k")) == {"a": [1, 2]}
    assert cache.redis.ttls["k"] == 30

    asyncio.run(cache.delete("k"))
    assert asyncio.run(cache.get("k")) is None


def test_redis_errors_degrade_to_misses():
    cache = CacheService(redis=BrokenRedis())
    asyncio.run(cache.set("k", 1, 30))
    assert asyncio.run(cache.get("k")) is None
    asyncio.run(cache.delete("k"))

    health = asyncio.run(cache.health_check())
    assert health["status"] == "unhealthy"


def test_ai_key_ignores_enum_vs_string_and_title():
    from_enum = CacheService.ai_evaluation_key("text", SubmissionCategory.WRITING)
    from_str = CacheService.ai_evaluation_key("text", "WRITING")
    assert from_enum == from_str
    assert from_enum.startswith("ai-eval:")
    assert from_enum != CacheService.ai_evaluation_key("text", "SPEAKING")
    assert from_enum != CacheService.ai_evaluation_key("text!", "WRITING")


def test_health_check_round_trip(cache):
    assert asyncio.run(cache.health_check()) == {"status": "healthy"}
