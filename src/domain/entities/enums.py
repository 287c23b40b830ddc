"""
Session Service Domain Enums

All enumeration types used across domain entities and services.
"""

from enum import Enum


class Role(str, Enum):
    """Subscription role carried in access tokens"""

    STARTER = "STARTER"
    PRO = "PRO"


class ForceLogoutReason(str, Enum):
    """Why a force-logout event was pushed"""

    device_logout = "device-logout"
    logout_all_devices = "logout-all-devices"
    session_expired = "session-expired"


class OperationClass(str, Enum):
    """Rate limiting partitions"""

    auth = "auth"
    general = "general"
    graphql = "graphql"
    mutation = "mutation"
    session_management = "session-management"


class PushEventType(str, Enum):
    """Server-to-client push event kinds"""

    force_logout = "force-logout"
    session_update = "session-update"
    heartbeat = "heartbeat"


class ConnectionState(str, Enum):
    """Push connection lifecycle"""

    connecting = "connecting"
    authenticated = "authenticated"
    open = "open"
    closed = "closed"
