from .adapter import PSPAdapter, PSPProvider
from .dispatcher import PSPDispatcher
from .errors import GatewayError

__all__ = ["PSPAdapter", "PSPProvider", "PSPDispatcher", "GatewayError"]
