from .dispatcher import ProxyDispatcher

__all__ = ["ProxyDispatcher"]
