"""
Device description from request metadata.

Coarse User-Agent sniffing; good enough to label rows in a session list.
"""

import ipaddress
import re
from typing import Optional

from src.domain.device import DeviceInfo

_BROWSERS = (
    # (marker, version pattern, label); order matters, Chrome UAs also say Safari
    ("edg/", r"edg/([\d.]+)", "Edge"),
    ("opr/", r"opr/([\d.]+)", "Opera"),
    ("opera/", r"opera/([\d.]+)", "Opera"),
    ("chrome/", r"chrome/([\d.]+)", "Chrome"),
    ("firefox/", r"firefox/([\d.]+)", "Firefox"),
    ("safari/", r"version/([\d.]+)", "Safari"),
)

_WINDOWS_VERSIONS = {
    "windows nt 10.0": "Windows 10/11",
    "windows nt 6.3": "Windows 8.1",
    "windows nt 6.2": "Windows 8",
    "windows nt 6.1": "Windows 7",
}


def _major(pattern: str, ua: str) -> str:
    match = re.search(pattern, ua)
    if not match:
        return ""
    return match.group(1).split(".")[0]


def _browser(ua: str) -> str:
    for marker, pattern, label in _BROWSERS:
        if marker in ua:
            version = _major(pattern, ua)
            return f"{label} {version}".strip()
    return "Unknown Browser"


def _os(ua: str) -> str:
    for marker, label in _WINDOWS_VERSIONS.items():
        if marker in ua:
            return label
    if "windows" in ua:
        return "Windows"
    if "iphone" in ua or "ipad" in ua:
        match = re.search(r"os ([\d_]+)", ua)
        return f"iOS {match.group(1).replace('_', '.')}" if match else "iOS"
    if "mac os x" in ua:
        match = re.search(r"mac os x ([\d_]+)", ua)
        return f"macOS {match.group(1).replace('_', '.')}" if match else "macOS"
    if "android" in ua:
        match = re.search(r"android ([\d.]+)", ua)
        return f"Android {match.group(1)}" if match else "Android"
    if "linux" in ua:
        return "Linux"
    return "Unknown OS"


def _device_type(ua: str) -> str:
    if "tablet" in ua or "ipad" in ua:
        return "Tablet"
    if "mobile" in ua or "android" in ua or "iphone" in ua:
        return "Mobile"
    return "Desktop"


def location_from_ip(ip_address: Optional[str]) -> str:
    if not ip_address:
        return "Unknown Location"
    try:
        address = ipaddress.ip_address(ip_address)
    except ValueError:
        return "Unknown Location"
    if address.is_private or address.is_loopback:
        return "Local Network"
    return "Unknown Location"


def parse_user_agent(user_agent: Optional[str], ip_address: Optional[str] = None) -> DeviceInfo:
    ua = (user_agent or "").lower()
    return DeviceInfo(
        browser=_browser(ua),
        os=_os(ua),
        device_type=_device_type(ua),
        location=location_from_ip(ip_address),
    )
