"""Keystore configuration."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from hotkeystore.exceptions import KeyStoreConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class KeyStoreConfig:
    """Parameters of a reloading keystore.

    Parameters
    ----------
    path : str or os.PathLike
        Keystore file.  Must exist and be readable when the store is built.
    password : str or bytes
        Keystore password.  May be empty, but not ``None``.
    store_type : str
        Engine name, e.g. ``"PKCS12"`` or ``"PEM"``.
    provider : str or None
        Engine provider.  ``None`` selects the default provider.
    reload_on_unchanged : bool
        Also reload when the file's modification time equals the one of the
        loaded revision.  Off by default; when on, every access whose file
        time has not moved backwards re-reads the file.
    """

    path: str | os.PathLike[str]
    password: str | bytes = dataclasses.field(repr=False)
    store_type: str = "PKCS12"
    provider: str | None = None
    reload_on_unchanged: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> KeyStoreConfig:
        """Create configuration from environment variables.

        Reads ``HOTKEYSTORE_PATH``, ``HOTKEYSTORE_PASSWORD``,
        ``HOTKEYSTORE_TYPE``, ``HOTKEYSTORE_PROVIDER`` and
        ``HOTKEYSTORE_RELOAD_ON_UNCHANGED``.  Explicit keyword arguments
        override environment values.

        Raises
        ------
        KeyStoreConfigError
            If no path or password is available from either source.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "HOTKEYSTORE_PATH": "path",
            "HOTKEYSTORE_PASSWORD": "password",
            "HOTKEYSTORE_TYPE": "store_type",
            "HOTKEYSTORE_PROVIDER": "provider",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        if "reload_on_unchanged" not in overrides:
            config_kwargs["reload_on_unchanged"] = _env_bool(
                env.get("HOTKEYSTORE_RELOAD_ON_UNCHANGED"),
                False,
            )

        config_kwargs.update(overrides)

        for required in ("path", "password"):
            if config_kwargs.get(required) is None:
                raise KeyStoreConfigError(f"Keystore {required} is not configured")

        return cls(**config_kwargs)
