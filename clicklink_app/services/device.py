from typing import Optional

from clicklink_app.models.enums import DeviceType


# Checked in order; the first match wins ("Linux; Android ... Mobile" is mobile)
_DEVICE_RULES = (
    (DeviceType.MOBILE, ("mobile",)),
    (DeviceType.TABLET, ("tablet",)),
    (DeviceType.DESKTOP, ("desktop", "windows", "mac", "linux")),
)


def classify_device(user_agent: Optional[str]) -> DeviceType:
    """Case-insensitive substring classification of a raw user-agent"""
    if not user_agent:
        return DeviceType.OTHER

    ua = user_agent.lower()
    for device_type, needles in _DEVICE_RULES:
        if any(needle in ua for needle in needles):
            return device_type
    return DeviceType.OTHER
