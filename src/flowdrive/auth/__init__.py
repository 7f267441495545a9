"""OAuth handshake, token refresh and the per-identity lifecycle manager.

Submodules are imported directly (flowdrive.auth.lifecycle, ...); the
vault and the controllers depend on each other's models.
"""
