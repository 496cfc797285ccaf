"""
Application listeners that plug into HTTPSocketServer.

    from httpsocket.handlers import EchoHandler
    HTTPSocketServer(config, listener_factory=EchoHandler).run()
"""

from .echo import EchoHandler

__all__ = ["EchoHandler"]
