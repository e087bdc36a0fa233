"""
Simple telemetry module for tracking relay events.
Events go to the standard logger; Application Insights picks them up from there.
"""
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def track_event(event_name: str, properties: Optional[Dict[str, Any]] = None):
    """
    Track a custom telemetry event.

    Args:
        event_name: Name of the event to track
        properties: Optional properties/metadata for the event
    """
    logger.info(f"Telemetry Event: {event_name}", extra={"properties": properties or {}})
