"""Transcription progress publisher for pub/sub event delivery."""

import logging
from pubsub import pub
from ..models.events import ProgressEvent

logger = logging.getLogger(__name__)

PROGRESS_TOPIC = "transcription_progress"


class ProgressPublisher:
    """Publishes transcription progress milestones using pubsub.pub."""

    def __init__(self, topic: str = PROGRESS_TOPIC):
        """Initialize progress publisher.

        Args:
            topic: Pub/sub topic name for progress events
        """
        self.topic = topic
        logger.info(f"ProgressPublisher initialized with topic: {topic}")

    def publish_progress(self, event: ProgressEvent) -> None:
        """Publish a progress event to the pub/sub topic.

        Args:
            event: ProgressEvent to publish
        """
        pub.sendMessage(self.topic, event=event)
        logger.debug(f"Published progress: {event.progress}% {event.status}")

    def subscribe(self, listener) -> None:
        pub.subscribe(listener, self.topic)

    def unsubscribe(self, listener) -> None:
        pub.unsubscribe(listener, self.topic)
