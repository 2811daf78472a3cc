from typing import Any, Dict, List, Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class GigaChatSettings(BaseSettings):
    """Connection settings handed to the GigaChat SDK client.

    Settings can be provided via environment variables with GIGACHAT_ prefix
    (GIGACHAT_CREDENTIALS, GIGACHAT_SCOPE, ...) or a .env file. Secrets are
    held as SecretStr and only revealed in `client_kwargs`.
    """

    model_config = SettingsConfigDict(
        env_prefix="GIGACHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Endpoints
    base_url: Optional[str] = None
    auth_url: Optional[str] = None

    # OAuth authorization key and its scope (GIGACHAT_API_PERS, ...)
    credentials: Optional[SecretStr] = None
    scope: Optional[str] = None

    # Pre-issued token, skips the OAuth exchange
    access_token: Optional[SecretStr] = None

    # Basic auth (on-premise installations)
    user: Optional[str] = None
    password: Optional[SecretStr] = None

    # Transport
    timeout: Optional[float] = None
    verify_ssl_certs: Optional[bool] = None
    ca_bundle_file: Optional[str] = None
    cert_file: Optional[str] = None
    key_file: Optional[str] = None
    key_file_password: Optional[SecretStr] = None

    profanity_check: Optional[bool] = None
    flags: Optional[List[str]] = None

    def client_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``gigachat.GigaChat``, without unset values."""
        kwargs: Dict[str, Any] = {}
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, SecretStr):
                value = value.get_secret_value()
            kwargs[name] = value
        return kwargs


CLIENT_SETTING_NAMES = frozenset(GigaChatSettings.model_fields)

# Environment variables holding secrets, keyed by constructor argument.
SECRET_ENV_VARS = {
    "credentials": "GIGACHAT_CREDENTIALS",
    "access_token": "GIGACHAT_ACCESS_TOKEN",
    "password": "GIGACHAT_PASSWORD",
    "key_file_password": "GIGACHAT_KEY_FILE_PASSWORD",
}


def collect_client_settings(values: Any) -> Any:
    """
    Move connection keywords of a model constructor into ``client_settings``.

    Lets ``ChatGigaChat(credentials=..., scope=...)`` work while the model
    itself only holds one `GigaChatSettings` field. Settings not passed
    explicitly are read from the environment.

    Raises:
        ConfigurationError: If both keywords and ``client_settings`` are given.
    """
    if not isinstance(values, dict):
        return values
    settings_kwargs = {k: v for k, v in values.items() if k in CLIENT_SETTING_NAMES}
    if not settings_kwargs:
        return values
    if "client_settings" in values:
        raise ConfigurationError(
            "Pass connection settings either as keywords or as client_settings, not both"
        )
    values = {k: v for k, v in values.items() if k not in CLIENT_SETTING_NAMES}
    values["client_settings"] = GigaChatSettings(**settings_kwargs)
    return values
