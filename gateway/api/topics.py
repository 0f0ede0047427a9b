from fastapi import APIRouter, Depends

from gateway.models.subscription import ActiveTopic, TopicStat
from gateway.storage.gateway import PersistenceGateway, get_persistence_gateway

router = APIRouter()


@router.get("", response_model=list[ActiveTopic])
async def list_active_topics(gateway: PersistenceGateway = Depends(get_persistence_gateway)):
    gateway.ensure_available()
    return await gateway.subscriptions.get_active_topics()


@router.get("/stats", response_model=list[TopicStat])
async def list_topic_stats(gateway: PersistenceGateway = Depends(get_persistence_gateway)):
    gateway.ensure_available()
    return await gateway.topics.get_topic_stats()


@router.get("/{topic:path}/subscribers", response_model=list[str])
async def list_topic_subscribers(
    topic: str, gateway: PersistenceGateway = Depends(get_persistence_gateway)
):
    gateway.ensure_available()
    return await gateway.subscriptions.get_topic_subscribers(topic)
