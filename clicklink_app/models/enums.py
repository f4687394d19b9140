from enum import Enum


class DeviceType(str, Enum):
    """Coarse client classification derived from the user-agent"""
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"
    OTHER = "other"
