"""
Outgoing request annotation.
"""

import os
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shared.logging import get_logger
from ..auth.credentials import CredentialStore
from ..models import RequestDescriptor


MOBILE_AGENT_PATTERN = re.compile(r"Mobile|Android|iPhone|iPad", re.IGNORECASE)
ZONEINFO_MARKER = "zoneinfo/"
DEFAULT_TIMEZONE = "UTC"

logger = get_logger("gateway.annotator")


@dataclass(frozen=True)
class DeviceProfile:
    """Device and viewport metadata sent with every request."""
    device_type: str = "desktop"
    screen_width: int = 1920
    screen_height: int = 1080
    pixel_ratio: float = 1.0
    app_mode: str = "browser"

    @classmethod
    def from_user_agent(
        cls,
        user_agent: str,
        *,
        screen_width: int = 1920,
        screen_height: int = 1080,
        pixel_ratio: float = 1.0,
        standalone: bool = False,
    ) -> "DeviceProfile":
        """Build a profile, treating phone and tablet agents as mobile."""
        return cls(
            device_type="mobile" if MOBILE_AGENT_PATTERN.search(user_agent or "") else "desktop",
            screen_width=screen_width,
            screen_height=screen_height,
            pixel_ratio=pixel_ratio or 1.0,
            app_mode="pwa" if standalone else "browser",
        )

    def as_headers(self) -> Dict[str, str]:
        return {
            "X-Device-Type": self.device_type,
            "X-Screen-Width": str(self.screen_width),
            "X-Screen-Height": str(self.screen_height),
            "X-Device-Pixel-Ratio": f"{self.pixel_ratio:g}",
            "X-App-Mode": self.app_mode,
        }


def _valid_zone(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None
    return name


def resolve_timezone(override: Optional[str] = None, localtime: Path = Path("/etc/localtime")) -> str:
    """Resolve the IANA timezone name of this process."""
    for candidate in (override, os.environ.get("TZ", "").lstrip(":")):
        zone = _valid_zone(candidate)
        if zone:
            return zone

    try:
        target = str(localtime.resolve())
    except OSError:
        target = ""
    if ZONEINFO_MARKER in target:
        zone = _valid_zone(target.split(ZONEINFO_MARKER, 1)[1])
        if zone:
            return zone

    if override:
        logger.warning("Ignoring unknown timezone override", timezone=override)
    return DEFAULT_TIMEZONE


class RequestAnnotator:
    """Attaches credentials, caller role, device metadata, timezone and a start time."""

    def __init__(
        self,
        credentials: CredentialStore,
        device: Optional[DeviceProfile] = None,
        timezone: Optional[str] = None,
    ):
        self.credentials = credentials
        self.device = device or DeviceProfile()
        self.timezone = timezone or resolve_timezone()

    async def annotate(self, request: RequestDescriptor) -> RequestDescriptor:
        token = await self.credentials.access_token()
        if token:
            request.headers["Authorization"] = f"Bearer {token}"

        role = await self.credentials.role()
        if role:
            request.headers["X-User-Role"] = role

        request.headers.update(self.device.as_headers())
        request.headers["X-Timezone"] = self.timezone

        request_id = request.metadata.setdefault("request_id", str(uuid.uuid4()))
        request.headers["X-Request-ID"] = request_id
        request.metadata["start_time"] = time.monotonic()
        return request
