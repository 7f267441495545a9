"""Application configuration for flowdrive.

Defines configuration models for the runtime settings store, credential vault,
OAuth behaviour, admin API, logging and the credential nodes themselves.
Config is stored at the OS-appropriate location (via click.get_app_dir).

Example usage:
    # Load from config file
    config = AppConfig.load_from_files(config_path)

    # Save new configuration
    config.save_to_file(config_path)
"""

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, SecretStr

from flowdrive.constants import (
    DEFAULT_ALLOWED_HOSTS,
    DEFAULT_API_HOST,
    DEFAULT_API_PORT,
    DEFAULT_DATA_DIR,
    DEFAULT_SCOPES,
    DEFAULT_SETTINGS_FILENAME,
    DEFAULT_TOKEN_EXPIRY_DAYS,
    OAUTH_CLIENT_TIMEOUT_SECONDS,
)
from flowdrive.utils.file_helpers import load_validated_json, require_file_exists


# =============================================================================
# Credential Nodes
# =============================================================================


class NodeClientCredentials(BaseModel):
    """Client credentials provisioned out-of-band for one node.

    Attributes:
        client_id: Google OAuth client ID.
        client_secret: Google OAuth client secret (never logged or returned).
    """

    client_id: str | None = None
    client_secret: SecretStr | None = None


class CredentialsNodeConfig(BaseModel):
    """Configuration of a single google-credentials node.

    Attributes:
        id: Opaque identity id assigned by the host.
        name: Display name.
        redirect_uri: Callback URL registered with the provider.
        scopes: Space-separated OAuth scopes.
        credentials: Static client id/secret for this node.
    """

    id: str
    name: str = ""
    redirect_uri: str = ""
    scopes: str = DEFAULT_SCOPES
    credentials: NodeClientCredentials = Field(default_factory=NodeClientCredentials)


# =============================================================================
# Runtime / Vault / OAuth
# =============================================================================


class RuntimeConfig(BaseModel):
    """Host runtime settings storage.

    Attributes:
        settings_path: JSON file holding the host settings object.
    """

    settings_path: str = str(Path(DEFAULT_DATA_DIR) / DEFAULT_SETTINGS_FILENAME)


class VaultConfig(BaseModel):
    """Encryption-at-rest settings for persisted tokens.

    Changing either value after tokens were persisted makes existing records
    unreadable; nodes fall back to the unauthorized state.

    Attributes:
        credential_secret: Operator secret; wins over the runtime default secret.
        cipher: Cipher mode for new and existing envelopes.
    """

    credential_secret: SecretStr | None = None
    cipher: Literal["aes-256-gcm", "aes-256-ctr"] = "aes-256-gcm"


class OAuthSettings(BaseModel):
    """OAuth client behaviour.

    Attributes:
        timeout_seconds: Timeout for calls to the token endpoint.
        default_expiry_days: Expiry assumed when the provider omits one.
    """

    timeout_seconds: int = Field(default=OAUTH_CLIENT_TIMEOUT_SECONDS, ge=1, le=300)
    default_expiry_days: int = Field(default=DEFAULT_TOKEN_EXPIRY_DAYS, ge=1)


# =============================================================================
# API / Logging
# =============================================================================


class APIConfig(BaseModel):
    """Admin HTTP surface settings.

    Attributes:
        host: Bind address.
        port: Bind port.
        cookie_secure: Mark the CSRF cookie Secure (enable behind HTTPS).
        admin_token: Bearer token for admin routes (FLOWDRIVE_ADMIN_TOKEN when unset).
        allowed_hosts: Host header names the server answers to.
    """

    host: str = DEFAULT_API_HOST
    port: int = Field(default=DEFAULT_API_PORT, ge=1, le=65535)
    cookie_secure: bool = False
    admin_token: SecretStr | None = None
    allowed_hosts: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_HOSTS))


class LoggingConfig(BaseModel):
    """Logging configuration settings.

    Attributes:
        log_dir: Optional directory for system.jsonl (console only when unset).
        log_level: Logging level.
    """

    log_dir: str | None = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class AppConfig(BaseModel):
    """Main application configuration for flowdrive.

    Attributes:
        runtime: Host settings storage location.
        vault: Encryption-at-rest settings.
        oauth: OAuth client behaviour.
        api: Admin HTTP surface.
        logging: Logging configuration.
        nodes: Credential nodes served by this process.
    """

    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    vault: VaultConfig = Field(default_factory=VaultConfig)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    nodes: list[CredentialsNodeConfig] = Field(default_factory=list)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to JSON file.

        Creates parent directories if they don't exist.
        Sets secure permissions (0o700) on the config directory.
        Secrets are written in clear; the file is owner-only.

        Args:
            config_path: Path where flowdrive_config.json should be saved.
        """
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.parent.chmod(0o700)

        data = self.model_dump(mode="json")
        if self.vault.credential_secret is not None:
            data["vault"]["credential_secret"] = self.vault.credential_secret.get_secret_value()
        if self.api.admin_token is not None:
            data["api"]["admin_token"] = self.api.admin_token.get_secret_value()
        for node, raw in zip(self.nodes, data["nodes"]):
            if node.credentials.client_secret is not None:
                raw["credentials"]["client_secret"] = node.credentials.client_secret.get_secret_value()

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

        config_path.chmod(0o600)

    @classmethod
    def load_from_files(cls, config_path: Path) -> "AppConfig":
        """Load configuration from JSON file.

        Args:
            config_path: Path to the config file (flowdrive_config.json).

        Returns:
            AppConfig instance with loaded configuration.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            ValueError: If config file is invalid or missing required fields.
        """
        require_file_exists(config_path, file_type="configuration")
        return load_validated_json(
            config_path,
            cls,
            file_type="config",
            recovery_hint="Fix the file or remove it to start from defaults.",
            encoding="utf-8",
        )
