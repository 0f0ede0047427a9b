import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from gateway.core.topics import topic_type
from gateway.models.subscription import ActiveTopic, Subscription
from gateway.storage.base import RedisStore, best_effort, to_mapping
from gateway.storage.topic_store import TopicStore

logger = logging.getLogger(__name__)

GLOBAL_SUBSCRIPTIONS = "subscriptions:global"


def subscription_key(client_id: str, topic: str) -> str:
    return f"sub:{client_id}:{topic}"


def client_subscriptions_key(client_id: str) -> str:
    return f"client:{client_id}:subscriptions"


def topic_subscribers_key(topic: str) -> str:
    return f"topic:{topic}:subscribers"


class SubscriptionStore(RedisStore):
    def __init__(self, connection=None, settings=None):
        super().__init__(connection, settings)
        self.topic_stats = TopicStore(self.connection, self.settings)

    @best_effort(False)
    async def store_subscription(self, subscription: Subscription) -> bool:
        if subscription.subscribed_at is None:
            subscription = subscription.model_copy(
                update={"subscribed_at": datetime.now(timezone.utc)}
            )

        sub_key = subscription_key(subscription.client_id, subscription.topic)
        client_key = client_subscriptions_key(subscription.client_id)
        topic_key = topic_subscribers_key(subscription.topic)
        ttl = self.settings.subscription_ttl_seconds

        async with self.redis.pipeline() as pipe:
            pipe.delete(sub_key)
            pipe.hset(
                sub_key,
                mapping=to_mapping(subscription.model_dump(mode="json", by_alias=True)),
            )
            pipe.sadd(client_key, subscription.topic)
            pipe.sadd(topic_key, subscription.client_id)
            pipe.sadd(GLOBAL_SUBSCRIPTIONS, sub_key)
            pipe.expire(sub_key, ttl)
            pipe.expire(client_key, ttl)
            pipe.expire(topic_key, ttl)
            await pipe.execute()

        return True

    @best_effort(False)
    async def remove_subscription(self, client_id: str, topic: str) -> bool:
        sub_key = subscription_key(client_id, topic)

        async with self.redis.pipeline() as pipe:
            pipe.delete(sub_key)
            pipe.srem(client_subscriptions_key(client_id), topic)
            pipe.srem(topic_subscribers_key(topic), client_id)
            pipe.srem(GLOBAL_SUBSCRIPTIONS, sub_key)
            await pipe.execute()

        return True

    @best_effort(0)
    async def remove_client_subscriptions(self, client_id: str) -> int:
        topics = await self.redis.smembers(client_subscriptions_key(client_id))

        for topic in topics:
            await self.remove_subscription(client_id, topic)

        return len(topics)

    @best_effort(list)
    async def get_active_subscriptions(self) -> list[Subscription]:
        sub_keys = await self.redis.smembers(GLOBAL_SUBSCRIPTIONS)

        subscriptions = []
        for sub_key in sorted(sub_keys):
            fields = await self.redis.hgetall(sub_key)
            if not fields:
                continue
            try:
                subscriptions.append(Subscription.model_validate(fields))
            except ValidationError as e:
                logger.warning(f"Discarding unreadable subscription {sub_key}: {e}")

        return subscriptions

    @best_effort(list)
    async def get_topic_subscribers(self, topic: str) -> list[str]:
        return sorted(await self.redis.smembers(topic_subscribers_key(topic)))

    @best_effort(list)
    async def get_client_subscriptions(self, client_id: str) -> list[str]:
        return sorted(await self.redis.smembers(client_subscriptions_key(client_id)))

    @best_effort(list)
    async def get_active_topics(self) -> list[ActiveTopic]:
        topics = sorted({s.topic for s in await self.get_active_subscriptions()})

        active = []
        for topic in topics:
            subscribers = await self.get_topic_subscribers(topic)
            stat = await self.topic_stats.get_topic_stat(topic)
            active.append(
                ActiveTopic(
                    name=topic,
                    type=topic_type(topic),
                    subscribers=len(subscribers),
                    message_count=stat.message_count if stat else 0,
                    last_message=stat.last_message if stat else None,
                )
            )

        return active
