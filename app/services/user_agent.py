"""
User Agent Parsing

Cheap substring rules deriving device type, browser and OS from a
user agent string. Good enough for reporting breakdowns; not meant to
be exhaustive.
"""

from typing import Optional


def detect_device_type(user_agent: Optional[str]) -> str:
    """Return 'tablet', 'mobile', 'desktop' or 'unknown'."""
    if not user_agent:
        return "unknown"
    ua = user_agent.lower()

    # Tablets first: iPad and Android tablets also contain mobile tokens
    if "ipad" in ua or "tablet" in ua or "playbook" in ua:
        return "tablet"

    if any(token in ua for token in (
        "mobile", "android", "iphone", "ipod", "windows phone", "blackberry"
    )):
        return "mobile"

    if any(token in ua for token in ("windows", "macintosh", "linux", "x11")):
        return "desktop"

    return "unknown"


def detect_browser(user_agent: Optional[str]) -> Optional[str]:
    if not user_agent:
        return None
    ua = user_agent.lower()

    # Order matters: Edge and Opera UAs also contain 'chrome'
    if "edg/" in ua:
        return "Edge"
    if "opr/" in ua or "opera" in ua:
        return "Opera"
    if "chromium" in ua:
        return "Chromium"
    if "chrome" in ua:
        return "Chrome"
    if "firefox" in ua:
        return "Firefox"
    if "safari" in ua:
        return "Safari"
    if "msie" in ua or "trident" in ua:
        return "Internet Explorer"
    return "Unknown"


def detect_os(user_agent: Optional[str]) -> Optional[str]:
    if not user_agent:
        return None
    ua = user_agent.lower()

    if "windows nt 10" in ua:
        return "Windows 10"
    if "windows" in ua:
        return "Windows"
    # iOS UAs contain 'like mac os x', so check them before macOS
    if "iphone" in ua or "ipad" in ua or "ipod" in ua:
        return "iOS"
    if "mac os x" in ua:
        return "macOS"
    if "android" in ua:
        return "Android"
    if "cros" in ua or "chromeos" in ua:
        return "ChromeOS"
    if "linux" in ua:
        return "Linux"
    return "Unknown"
