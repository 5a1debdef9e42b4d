from __future__ import annotations

import os
from typing import Final

import keyring
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError, PasswordDeleteError

from lopic_client.config.settings import APP_NAME
from lopic_client.utils.logging import get_logger


logger = get_logger(__name__)

ALLOW_INSECURE_ENV: Final[str] = "LOPIC_CLIENT_ALLOW_INSECURE_KEYRING"

_PLAINTEXT_MODULES: Final[tuple[str, ...]] = (
    "keyring.backends.fail",
    "keyring.backends.null",
    "keyrings.alt.file",
)
_PLAINTEXT_NAME_MARKERS: Final[tuple[str, ...]] = ("plaintext", "unencrypted", "insecure")


class InsecureKeyringError(RuntimeError):
    """The active keyring backend would store tokens unencrypted."""


class SecretStoreError(RuntimeError):
    """The keyring refused to store a secret."""


def backend_name(backend: KeyringBackend) -> str:
    cls = type(backend)
    return f"{cls.__module__}.{cls.__name__}"


def backend_is_encrypted(backend: KeyringBackend) -> bool:
    """Best-effort check that ``backend`` keeps secrets encrypted at rest.

    Backends may declare ``secure_storage``; otherwise the chainer is secure
    only if every child is, and known file/null backends are not.
    """
    declared = getattr(backend, "secure_storage", None)
    if isinstance(declared, bool):
        return declared

    cls = type(backend)
    if cls.__module__.startswith("keyring.backends.chainer"):
        children = list(getattr(backend, "backends", ()))
        return bool(children) and all(backend_is_encrypted(child) for child in children)
    if cls.__module__.startswith(_PLAINTEXT_MODULES):
        return False
    lowered = cls.__name__.lower()
    return not any(marker in lowered for marker in _PLAINTEXT_NAME_MARKERS)


def _insecure_allowed(explicit: bool | None) -> bool:
    if explicit is not None:
        return explicit
    raw = os.getenv(ALLOW_INSECURE_ENV, "")
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class SecretStore:
    """OS keyring entries under one service name.

    Construction fails with :class:`InsecureKeyringError` when the backend
    would write plaintext, unless explicitly allowed (``allow_insecure`` or
    ``LOPIC_CLIENT_ALLOW_INSECURE_KEYRING=1``).
    """

    def __init__(
        self,
        service_name: str = APP_NAME,
        *,
        backend: KeyringBackend | None = None,
        allow_insecure: bool | None = None,
    ) -> None:
        self._service_name = service_name
        self._backend = backend if backend is not None else keyring.get_keyring()
        name = backend_name(self._backend)
        if not backend_is_encrypted(self._backend):
            if not _insecure_allowed(allow_insecure):
                raise InsecureKeyringError(
                    f"Keyring backend {name} does not provide encrypted storage. "
                    f"Set {ALLOW_INSECURE_ENV}=1 to use it anyway during development."
                )
            logger.warning("Using unencrypted keyring backend", backend=name)
        logger.debug("Secret store ready", backend=name, service=service_name)

    @property
    def service_name(self) -> str:
        return self._service_name

    def get_secret(self, key: str) -> str | None:
        try:
            return self._backend.get_password(self._service_name, key)
        except KeyringError as exc:
            logger.warning("Keyring read failed", key=key, error=str(exc))
            return None

    def set_secret(self, key: str, value: str) -> None:
        try:
            self._backend.set_password(self._service_name, key, value)
        except KeyringError as exc:
            raise SecretStoreError(f"Could not store {key!r} in the keyring") from exc

    def delete_secret(self, key: str) -> None:
        try:
            self._backend.delete_password(self._service_name, key)
        except PasswordDeleteError:
            logger.debug("Secret already absent", key=key)


__all__ = [
    "ALLOW_INSECURE_ENV",
    "InsecureKeyringError",
    "SecretStore",
    "SecretStoreError",
    "backend_is_encrypted",
]
