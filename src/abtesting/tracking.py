"""
Best-effort event tracking.

Instrumentation calls track() with a raw payload. Rejections and storage
failures are logged and reported back, never raised: tracking must not
break page delivery.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from .errors import ValidationError
from .event_store import EventStore
from .schema import Event, EventKind

logger = logging.getLogger(__name__)

STORE_FAILURE = "Event could not be stored"


def track(store: EventStore, payload: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Parse and append one tracking payload.
    
    Returns:
        (True, None) on success, (False, reason) otherwise
    """
    try:
        event = Event.from_payload(payload)
    except ValidationError as e:
        logger.info(f"Rejected tracking payload: {e}")
        return False, str(e)

    try:
        store.append(event)
    except ValidationError as e:
        return False, str(e)
    except Exception as e:
        logger.error(f"Event store append failed for {event.experiment_id}: {e}")
        return False, STORE_FAILURE
    return True, None


def track_impression(store: EventStore, experiment_id: str, variant_index: int,
                     target: str = "", identity: Optional[str] = None) -> bool:
    ok, _ = track(store, {
        "testId": experiment_id, "variant": variant_index,
        "event": EventKind.IMPRESSION.value, "slug": target, "uid": identity,
    })
    return ok


def track_conversion(store: EventStore, experiment_id: str, variant_index: int,
                     target: str = "", identity: Optional[str] = None) -> bool:
    ok, _ = track(store, {
        "testId": experiment_id, "variant": variant_index,
        "event": EventKind.CONVERSION.value, "slug": target, "uid": identity,
    })
    return ok


def track_event(store: EventStore, experiment_id: str, variant_index: int, name: str,
                target: str = "", identity: Optional[str] = None) -> bool:
    """Custom named event (scroll depth, video play, cta_click, ...)."""
    ok, _ = track(store, {
        "testId": experiment_id, "variant": variant_index,
        "event": EventKind.CUSTOM.value, "name": name, "slug": target, "uid": identity,
    })
    return ok
