from api.features.tools.entities.platform_connection import (
    ConnectionStatus,
    Platform,
    PlatformConnection,
)

__all__ = ["ConnectionStatus", "Platform", "PlatformConnection"]
