from typing import Optional

from pydantic import BaseModel


class DeviceInfo(BaseModel):
    """Device description stored on a session row"""

    browser: str = "Unknown Browser"
    os: str = "Unknown OS"
    device_type: str = "Desktop"
    location: Optional[str] = None
