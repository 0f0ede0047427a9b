import logging
from datetime import datetime

from pydantic import ValidationError

from gateway.models.subscription import TopicStat
from gateway.storage.base import RedisStore, best_effort

logger = logging.getLogger(__name__)

TOPICS_INDEX = "topics:index"


def topic_key(topic: str) -> str:
    return f"topic:{topic}"


class TopicStore(RedisStore):
    @best_effort(False)
    async def store_topic_stats(self, topic: str, last_message: datetime) -> bool:
        key = topic_key(topic)

        async with self.redis.pipeline() as pipe:
            pipe.hincrby(key, "messageCount", 1)
            pipe.hset(key, mapping={"topic": topic, "lastMessage": last_message.isoformat()})
            pipe.sadd(TOPICS_INDEX, topic)
            pipe.expire(key, self.settings.topic_ttl_seconds)
            await pipe.execute()

        return True

    @best_effort(None)
    async def get_topic_stat(self, topic: str):
        fields = await self.redis.hgetall(topic_key(topic))
        if not fields:
            return None

        try:
            return TopicStat.model_validate(fields)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable topic stats {topic}: {e}")
            return None

    @best_effort(list)
    async def get_topic_stats(self) -> list[TopicStat]:
        topics = await self.redis.smembers(TOPICS_INDEX)

        stats = []
        for topic in sorted(topics):
            stat = await self.get_topic_stat(topic)
            if stat:
                stats.append(stat)

        return stats
