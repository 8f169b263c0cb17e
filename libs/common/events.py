"""Deployment notifications over Redis pub/sub.

Pipeline stages announce completed work (a promoted model, a backup, a
registry record) so dashboards and chat-ops consumers can react without
polling the registry files. Producers publish JSON payloads on namespaced
channels derived from ``EventType``.

Key concepts
- "EventType" stable identifiers are versioned (``.v1`` suffix)
- ``EventPublisher`` composes channel names as ``{prefix}:{event_type}``
"""

import json
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict

import redis
import structlog

logger = structlog.get_logger("events")


class EventType(Enum):
    """Event types emitted by the promotion tooling."""
    MODEL_PROMOTED = "docintel.model.promoted.v1"
    MODEL_BACKED_UP = "docintel.model.backed_up.v1"
    DEPLOYMENT_RECORDED = "docintel.deployment.recorded.v1"


@dataclass
class BaseEvent:
    """Base event class.

    Child events set their ``event_type`` in ``__post_init__`` and extend the
    payload with the fields relevant to the stage.
    """
    timestamp: int
    event_type: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary."""
        return asdict(self)

    def to_json(self) -> str:
        """Convert event to JSON string."""
        return json.dumps(self.to_dict())


@dataclass
class ModelPromotedEvent(BaseEvent):
    """Event emitted when a model copy reaches ``succeeded``."""
    model_name: str
    source_service: str
    target_service: str
    operation_id: str

    def __post_init__(self):
        self.event_type = EventType.MODEL_PROMOTED.value
        if not self.timestamp:
            self.timestamp = int(time.time() * 1000)


@dataclass
class ModelBackedUpEvent(BaseEvent):
    """Event emitted when a backup directory has been written."""
    model_name: str
    source_service: str
    backup_location: str

    def __post_init__(self):
        self.event_type = EventType.MODEL_BACKED_UP.value
        if not self.timestamp:
            self.timestamp = int(time.time() * 1000)


@dataclass
class DeploymentRecordedEvent(BaseEvent):
    """Event emitted when a registry entry is upserted."""
    model_name: str
    version: str
    environment: str
    status: str
    build_id: str

    def __post_init__(self):
        self.event_type = EventType.DEPLOYMENT_RECORDED.value
        if not self.timestamp:
            self.timestamp = int(time.time() * 1000)


class EventPublisher:
    """Publishes events to Redis.

    Notes
    - Publishing retries transient Redis errors; the last failure is logged and re-raised.
    - Messages are serialized as JSON to keep consumers language-agnostic.
    """

    def __init__(self, redis_url: str, channel_prefix: str = "docintel_events"):
        self.redis_client = redis.from_url(redis_url)
        self.channel_prefix = channel_prefix

    def publish(self, event: BaseEvent) -> None:
        """Publish an event with retry logic.

        The channel is derived from the event's type to allow subscribers to
        filter efficiently without payload inspection.
        """
        max_retries = 3
        base_delay = 0.5

        for attempt in range(max_retries):
            try:
                channel = f"{self.channel_prefix}:{event.event_type}"
                self.redis_client.publish(channel, event.to_json())
                logger.info(
                    "Event published",
                    event_type=event.event_type,
                    channel=channel
                )
                return
            except redis.RedisError as e:
                if attempt == max_retries - 1:
                    logger.error(
                        "Failed to publish event after all retries",
                        event_type=event.event_type,
                        error=str(e)
                    )
                    raise

                delay = base_delay * (2 ** attempt)
                logger.warning(
                    "Event publish failed, retrying",
                    event_type=event.event_type,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay=delay,
                    error=str(e)
                )
                time.sleep(delay)

    def publish_model_promoted(
        self,
        model_name: str,
        source_service: str,
        target_service: str,
        operation_id: str
    ) -> None:
        """Publish model promoted event."""
        self.publish(ModelPromotedEvent(
            timestamp=int(time.time() * 1000),
            event_type=EventType.MODEL_PROMOTED.value,
            model_name=model_name,
            source_service=source_service,
            target_service=target_service,
            operation_id=operation_id
        ))

    def publish_model_backed_up(
        self,
        model_name: str,
        source_service: str,
        backup_location: str
    ) -> None:
        """Publish model backed up event."""
        self.publish(ModelBackedUpEvent(
            timestamp=int(time.time() * 1000),
            event_type=EventType.MODEL_BACKED_UP.value,
            model_name=model_name,
            source_service=source_service,
            backup_location=backup_location
        ))

    def publish_deployment_recorded(
        self,
        model_name: str,
        version: str,
        environment: str,
        status: str,
        build_id: str
    ) -> None:
        """Publish deployment recorded event."""
        self.publish(DeploymentRecordedEvent(
            timestamp=int(time.time() * 1000),
            event_type=EventType.DEPLOYMENT_RECORDED.value,
            model_name=model_name,
            version=version,
            environment=environment,
            status=status,
            build_id=build_id
        ))


def create_event_publisher(redis_url: str) -> EventPublisher:
    """Create an event publisher."""
    return EventPublisher(redis_url)
