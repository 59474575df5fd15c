"""Device-type heuristic from a user-agent string."""
import re
from typing import Optional

from app.domain.continuity.models import DeviceType

# Order matters: tablets also match most mobile patterns.
_TABLET = re.compile(r"ipad|tablet|kindle|silk/|playbook|nexus (7|9|10)\b|sm-t\d+", re.IGNORECASE)
_MOBILE = re.compile(
    r"mobi|iphone|ipod|android|blackberry|bb10|windows phone|iemobile|opera mini|webos",
    re.IGNORECASE,
)
# Phone-only tokens; some of these UAs also say "Android" without "Mobile".
_PHONE = re.compile(r"iphone|ipod|opera mini|windows phone|iemobile", re.IGNORECASE)
_DESKTOP = re.compile(r"windows nt|macintosh|mac os x|x11|linux|cros|freebsd", re.IGNORECASE)


def _parse_mobile_hint(hint: Optional[str]) -> Optional[bool]:
    """Sec-CH-UA-Mobile is a structured boolean: '?1' or '?0'."""
    if not hint:
        return None
    value = hint.strip()
    if value == "?1":
        return True
    if value == "?0":
        return False
    return None


def detect_device_type(user_agent: Optional[str], mobile_hint: Optional[str] = None) -> DeviceType:
    """Map a user agent (plus optional Sec-CH-UA-Mobile hint) to desktop/mobile/tablet; unknown if unsure."""
    ua = (user_agent or "").strip()
    hinted_mobile = _parse_mobile_hint(mobile_hint)
    if not ua:
        if hinted_mobile is True:
            return DeviceType.MOBILE
        return DeviceType.UNKNOWN

    if _TABLET.search(ua):
        return DeviceType.TABLET
    if _PHONE.search(ua):
        return DeviceType.MOBILE
    lowered = ua.lower()
    # Android tablets drop the "Mobile" token.
    if "android" in lowered and "mobi" not in lowered:
        return DeviceType.TABLET
    if _MOBILE.search(ua) or hinted_mobile is True:
        return DeviceType.MOBILE
    if _DESKTOP.search(ua):
        return DeviceType.DESKTOP
    return DeviceType.UNKNOWN
