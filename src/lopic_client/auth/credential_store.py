from __future__ import annotations

from pydantic import ValidationError

from lopic_client.auth.secret_store import SecretStore
from lopic_client.auth.types import Credential
from lopic_client.utils.logging import get_logger


CREDENTIAL_KEY = "credential"

logger = get_logger(__name__)


class CredentialStore:
    """Holds the current credential pair, optionally mirrored to the keyring.

    The credential is always replaced as a whole; the persisted copy is a
    single JSON blob so a reader never sees half of a renewal. ``read()``
    returns a snapshot and callers must not assume it is unchanged by the
    time they read again.
    """

    def __init__(self, secrets: SecretStore | None = None) -> None:
        self._secrets = secrets
        self._credential: Credential | None = None
        if secrets is not None:
            self._credential = self._load(secrets)

    @property
    def persistent(self) -> bool:
        return self._secrets is not None

    def read(self) -> Credential | None:
        return self._credential

    def write(self, credential: Credential) -> None:
        if self._secrets is not None:
            self._secrets.set_secret(CREDENTIAL_KEY, credential.model_dump_json())
        self._credential = credential
        logger.debug(
            "Stored credential",
            access_expires_at=credential.access_expires_at,
            refresh_expires_at=credential.refresh_expires_at,
        )

    def clear(self) -> None:
        had_credential = self._credential is not None
        self._credential = None
        if self._secrets is not None:
            self._secrets.delete_secret(CREDENTIAL_KEY)
        if had_credential:
            logger.info("Cleared stored credential")

    @staticmethod
    def _load(secrets: SecretStore) -> Credential | None:
        raw = secrets.get_secret(CREDENTIAL_KEY)
        if not raw:
            return None
        try:
            return Credential.model_validate_json(raw)
        except ValidationError:
            logger.warning(
                "Discarding unreadable stored credential",
                service=secrets.service_name,
            )
            return None


__all__ = ["CREDENTIAL_KEY", "CredentialStore"]
