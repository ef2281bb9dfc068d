"""Artifact file naming.

Artifacts are named ``{branch}__{timestamp}.{ext}``. Branch hierarchy
separators are replaced so the artifact is always a flat file name, and the
UTC timestamp keeps a directory listing in save order.

Two saves of the same branch within one second get the same name.
"""

from datetime import datetime, timezone
from typing import Optional

SEPARATOR = "/"
SEPARATOR_SUBSTITUTE = "--"
FIELD_DELIMITER = "__"
TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"


def sanitize(branch_name: str) -> str:
    """Make a branch name safe to use as a single file name component."""
    if not branch_name:
        raise ValueError("branch name must not be empty")
    return branch_name.replace(SEPARATOR, SEPARATOR_SUBSTITUTE)


def timestamp(now: Optional[datetime] = None) -> str:
    """Format ``now`` (default: the current instant) as a UTC stamp."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)
    return now.strftime(TIMESTAMP_FORMAT)


def artifact_name(branch_name: str, stamp: str, extension: str) -> str:
    """Compose the artifact file name for ``branch_name`` saved at ``stamp``."""
    return f"{sanitize(branch_name)}{FIELD_DELIMITER}{stamp}.{extension.lstrip('.')}"
