"""
Client configuration for the Azure AD (windows_aad) provider.

ClientConfiguration is the immutable per-request view of the app registration
and feature flags. EnvConfigStore builds it from AZURE_* environment variables
(load .env before importing, as main.py does); hosts with their own settings
storage implement the ConfigStore protocol instead.
"""

import os
from dataclasses import dataclass
from typing import Tuple

from .errors import ConfigurationUnavailable

PROVIDER_KEY = "windows_aad"
DEFAULT_TIMEOUT_SECONDS = 10.0

MAPPING_METHOD_MANUAL = "manual"
MAPPING_METHOD_AUTOMATIC = "automatic"


@dataclass(frozen=True)
class ClientConfiguration:
    """App registration settings and feature flags for one provider."""

    client_id: str
    client_secret: str
    authorization_endpoint: str
    token_endpoint: str
    enable_single_sign_out: bool = False
    map_ad_groups_to_roles: bool = False
    group_mapping_rules: str = ""
    group_mapping_method: str = MAPPING_METHOD_MANUAL


def _env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean env var; accepts 1/true/yes/on (any case)."""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def graph_timeout_seconds() -> float:
    """Timeout applied to every call to Azure AD and Graph."""
    return float(os.getenv("GRAPH_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)))


def _read_mapping_rules() -> str:
    path = os.getenv("AZURE_GROUP_MAPPINGS_FILE")
    if path:
        try:
            with open(path, encoding="utf-8") as fh:
                return fh.read()
        except OSError as e:
            raise ConfigurationUnavailable(f"Cannot read group mappings file {path}: {e}") from e
    # Single-line env values may encode line breaks as a literal \n
    return os.getenv("AZURE_GROUP_MAPPINGS", "").replace("\\n", "\n")


class EnvConfigStore:
    """ConfigStore backed by environment variables. Re-reads the environment on every call."""

    def _check_key(self, provider_key: str) -> None:
        if provider_key != PROVIDER_KEY:
            raise ConfigurationUnavailable(f"Unknown OpenID Connect client: {provider_key}")

    def get_client_config(self, provider_key: str) -> ClientConfiguration:
        self._check_key(provider_key)
        client_id = os.getenv("AZURE_CLIENT_ID")
        client_secret = os.getenv("AZURE_CLIENT_SECRET")
        if not client_id or not client_secret:
            raise ConfigurationUnavailable("AZURE_CLIENT_ID and AZURE_CLIENT_SECRET must be set")

        tenant = os.getenv("AZURE_TENANT_ID") or "common"
        authority = f"https://login.microsoftonline.com/{tenant}/oauth2/v2.0"
        method = os.getenv("AZURE_GROUP_MAPPING_METHOD", MAPPING_METHOD_MANUAL).strip().lower()
        if method not in (MAPPING_METHOD_MANUAL, MAPPING_METHOD_AUTOMATIC):
            raise ConfigurationUnavailable(f"Unsupported AZURE_GROUP_MAPPING_METHOD: {method}")

        return ClientConfiguration(
            client_id=client_id,
            client_secret=client_secret,
            authorization_endpoint=os.getenv("AZURE_AUTHORIZATION_ENDPOINT") or f"{authority}/authorize",
            token_endpoint=os.getenv("AZURE_TOKEN_ENDPOINT") or f"{authority}/token",
            enable_single_sign_out=_env_flag("AZURE_ENABLE_SINGLE_SIGN_OUT"),
            map_ad_groups_to_roles=_env_flag("AZURE_MAP_AD_GROUPS_TO_ROLES"),
            group_mapping_rules=_read_mapping_rules(),
            group_mapping_method=method,
        )

    def is_client_enabled(self, provider_key: str) -> bool:
        self._check_key(provider_key)
        return _env_flag("AZURE_CLIENT_ENABLED", default=True)


def load_client_config(config_store, provider_key: str = PROVIDER_KEY) -> Tuple[ClientConfiguration, bool]:
    """
    Return (config, enabled) from the store.

    Whatever the store raises is wrapped in ConfigurationUnavailable so callers
    only have one failure type to treat as "feature disabled".
    """
    try:
        config = config_store.get_client_config(provider_key)
        enabled = bool(config_store.is_client_enabled(provider_key))
    except ConfigurationUnavailable:
        raise
    except Exception as e:
        raise ConfigurationUnavailable(f"{type(e).__name__}: {e}") from e
    return config, enabled
