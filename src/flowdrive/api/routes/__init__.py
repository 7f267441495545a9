"""API route modules.

- credentials: OAuth handshake and status for credential nodes
- health: Liveness check
"""

from . import credentials, health

__all__ = ["credentials", "health"]
