"""Recording lifecycle publisher for pub/sub event delivery."""

import logging
from pubsub import pub
from ..models.events import RecordingEvent

logger = logging.getLogger(__name__)

RECORDING_EVENTS_TOPIC = "recording_events"


class RecordingEventPublisher:
    """Publishes recording lifecycle events using pubsub.pub."""

    def __init__(self, topic: str = RECORDING_EVENTS_TOPIC):
        """Initialize recording event publisher.

        Args:
            topic: Pub/sub topic name for recording events
        """
        self.topic = topic
        logger.info(f"RecordingEventPublisher initialized with topic: {topic}")

    def publish_recording_event(self, event: RecordingEvent) -> None:
        """Publish a recording event to the pub/sub topic.

        Args:
            event: RecordingEvent to publish
        """
        pub.sendMessage(self.topic, event=event)
        logger.debug(f"Published recording event: {event.event_type} ({event.state})")
