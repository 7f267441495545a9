"""Application-wide constants for flowdrive.

Constants that define application behavior.
For user-configurable settings per deployment, see config.py.
"""

import os

from platformdirs import user_data_dir

# ============================================================================
# Runtime Data Directory
# ============================================================================

# OS-specific data directory holding the runtime settings file when the
# operator does not configure one explicitly.
#
# Platform-specific paths:
# - macOS: ~/Library/Application Support/flowdrive/
# - Linux: ~/.local/share/flowdrive/
# - Windows: %LOCALAPPDATA%\flowdrive\
DEFAULT_DATA_DIR: str = os.path.realpath(user_data_dir("flowdrive"))

# Runtime settings file (mirrors the host runtime's .config.runtime.json)
DEFAULT_SETTINGS_FILENAME: str = ".config.runtime.json"

# ============================================================================
# Persisted Credential Layout
# ============================================================================

# Reserved top-level key in the host settings object.
# Value: mapping of identity id -> cipher envelope {"$": "<iv hex><base64>"}
SETTINGS_CREDENTIALS_KEY: str = "google-credentials"

# Settings key where the runtime-generated default secret lives
SETTINGS_DEFAULT_SECRET_KEY: str = "_credentialSecret"

# Envelope field holding the encoded ciphertext
ENVELOPE_FIELD: str = "$"

# IV/nonce length in bytes (rendered as 32 hex characters in the envelope)
CIPHER_IV_BYTES: int = 16
CIPHER_IV_HEX_LENGTH: int = CIPHER_IV_BYTES * 2

# Supported cipher modes. GCM is authenticated; CTR matches the host runtime's
# own credential encryption byte for byte.
CIPHER_MODES: tuple[str, ...] = ("aes-256-gcm", "aes-256-ctr")
DEFAULT_CIPHER_MODE: str = "aes-256-gcm"

# Refreshable subset of a credential written to durable storage
PERSISTED_CREDENTIAL_FIELDS: tuple[str, ...] = (
    "access_token",
    "refresh_token",
    "expiry_date",
    "refresh_token_expiry_date",
)

# ============================================================================
# Google OAuth 2.0 Endpoints
# ============================================================================

GOOGLE_AUTH_URL: str = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"

# Scope requested when neither the request nor the node config names one
DEFAULT_SCOPES: str = "https://www.googleapis.com/auth/drive"

# Timeout for OAuth HTTP requests (code exchange, refresh)
OAUTH_CLIENT_TIMEOUT_SECONDS: int = 30

# Expiry assumed when the provider omits one (days). Policy default, configurable
# through OAuthSettings.default_expiry_days.
DEFAULT_TOKEN_EXPIRY_DAYS: int = 3650

# ============================================================================
# Handshake / CSRF
# ============================================================================

# Random bytes behind each CSRF token (24 URL-safe characters once encoded)
CSRF_TOKEN_BYTES: int = 18

# Cookie carrying the CSRF token back to the browser
CSRF_COOKIE_NAME: str = "csrf"

# Lifetime of the CSRF cookie (seconds)
CSRF_COOKIE_MAX_AGE_SECONDS: int = 600

# Separator between identity id and CSRF token in the OAuth state parameter
STATE_SEPARATOR: str = ":"

# ============================================================================
# Admin API
# ============================================================================

# Route prefix the admin surface is mounted under
ADMIN_ROUTE_PREFIX: str = "/google-credentials"

DEFAULT_API_HOST: str = "127.0.0.1"
DEFAULT_API_PORT: int = 1880

# Host header names the admin server answers to (DNS rebinding protection)
DEFAULT_ALLOWED_HOSTS: tuple[str, ...] = ("localhost", "127.0.0.1", "[::1]")

# Default HTTP timeout for CLI -> API calls (seconds)
DEFAULT_HTTP_TIMEOUT_SECONDS: int = 30

# ============================================================================
# Google Drive API
# ============================================================================

DRIVE_API_URL: str = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL: str = "https://www.googleapis.com/upload/drive/v3"

# Fields requested for file metadata responses
DRIVE_FILE_FIELDS: str = "id, name, mimeType, parents, modifiedTime, size"

DEFAULT_DRIVE_PAGE_SIZE: int = 100
