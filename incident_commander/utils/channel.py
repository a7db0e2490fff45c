"""Incident channel naming."""

import re
from datetime import date

MAX_CHANNEL_NAME = 80
MAX_SLUG = 40

_NON_SLUG = re.compile(r"[^a-z0-9-]")


def slugify_service(service: str) -> str:
    slug = service.lower().replace(" ", "-").replace("_", "-")
    return _NON_SLUG.sub("", slug)[:MAX_SLUG]


def generate_channel_name(service: str, day: date, incident_id: str) -> str:
    """Build ``inc-YYYYMMDD-<service-slug>``.

    Falls back to a short incident id suffix when the slug is empty or the
    name would not fit the chat platform's 80-character limit.
    """
    prefix = f"inc-{day:%Y%m%d}"
    slug = slugify_service(service)
    name = f"{prefix}-{slug}"
    if not slug or len(name) > MAX_CHANNEL_NAME:
        return f"{prefix}-{incident_id[:4]}"
    return name
