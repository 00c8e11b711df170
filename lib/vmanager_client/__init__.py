from .client import VManagerClient
from .errors import ApiError, AuthError, NetworkError, VManagerClientError

__all__ = ["VManagerClient", "ApiError", "AuthError", "NetworkError", "VManagerClientError"]
