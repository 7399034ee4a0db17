"""
Product analytics through a process-wide PostHog client.

The client batches events on a background thread, so ``capture_event``
returns immediately.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from posthog import Posthog

from config.settings import config

logger = logging.getLogger(__name__)

posthog_client = Posthog(
    config.posthog_api_key,
    host=config.posthog_host,
    disabled=not config.posthog_api_key,
)


def capture_event(
    distinct_id: str,
    event: str,
    properties: Optional[Dict[str, Any]] = None,
    groups: Optional[Dict[str, Any]] = None,
) -> None:
    logger.debug("Capturing %r for %s", event, distinct_id)
    posthog_client.capture(
        distinct_id=distinct_id,
        event=event,
        properties=properties or {},
        groups=groups or {},
    )
