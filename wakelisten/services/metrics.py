"""Fire-and-forget metrics emission."""

import logging
from pubsub import pub

logger = logging.getLogger(__name__)

METRICS_TOPIC = "metrics"


class MetricsPublisher:
    """Logs metrics and publishes them on a pub/sub topic.

    Emitting never raises: a failing subscriber is logged and ignored.
    """

    def __init__(self, topic: str = METRICS_TOPIC):
        self.topic = topic

    def emit(self, category: str, action: str, label: str, value: float) -> None:
        logger.info(f"metric c: {category} a: {action} l: {label} v: {value}")
        try:
            pub.sendMessage(self.topic, category=category, action=action, label=label, value=value)
        except Exception as e:
            logger.warning(f"Metric subscriber failed for {category}/{action}: {e}")
