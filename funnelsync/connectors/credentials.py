"""FunnelSync — Credential Resolution.

The token module owns OAuth. This engine only asks for an already-valid
bearer credential per account, and passes it explicitly into every
connector call.
"""

import os
from abc import ABC, abstractmethod
from typing import Dict, Optional

from funnelsync.config import settings
from funnelsync.core.errors import CredentialError
from funnelsync.core.taxonomy import Platform
from funnelsync.models.store_models import Account


class CredentialProvider(ABC):
    """Resolves an account's credential reference to a bearer token."""

    @abstractmethod
    def get_credential(self, account: Account) -> str:
        """Return a bearer token or raise CredentialError."""
        ...


class EnvCredentialProvider(CredentialProvider):
    """Reads the environment variable named by `credential_ref`.

    Falls back to the platform-wide token in settings when the account has
    no reference of its own.
    """

    def get_credential(self, account: Account) -> str:
        token: Optional[str] = None
        if account.credential_ref:
            token = os.environ.get(account.credential_ref)
        if not token:
            if account.platform == Platform.META.value:
                token = settings.meta_access_token
            else:
                token = settings.google_ads_access_token
        if not token:
            raise CredentialError(
                f"No credential available for {account.platform} account {account.account_id}"
            )
        return token


class StaticCredentialProvider(CredentialProvider):
    """In-memory mapping of credential_ref → token."""

    def __init__(self, tokens: Dict[str, str]):
        self.tokens = tokens

    def get_credential(self, account: Account) -> str:
        token = self.tokens.get(account.credential_ref)
        if not token:
            raise CredentialError(
                f"Unknown credential reference {account.credential_ref!r}"
            )
        return token
