"""Credential storage and token renewal for the Lopic client."""

from .types import Clock, Credential, RenewalState, SessionTerminated, TokenResponse
from .secret_store import InsecureKeyringError, SecretStore, SecretStoreError
from .credential_store import CredentialStore
from .renewal import Renewer, TokenRenewer
from .coordinator import TokenRefreshCoordinator
from .proactive import ProactiveRenewalTrigger

__all__ = [
    "Clock",
    "Credential",
    "CredentialStore",
    "InsecureKeyringError",
    "ProactiveRenewalTrigger",
    "RenewalState",
    "Renewer",
    "SecretStore",
    "SecretStoreError",
    "SessionTerminated",
    "TokenRefreshCoordinator",
    "TokenRenewer",
    "TokenResponse",
]
