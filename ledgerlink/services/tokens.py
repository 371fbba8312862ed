"""Credential value types.

Secrets are held in ``pydantic.SecretStr`` so they never show up in reprs,
logs or tracebacks; ``get_secret_value()`` is only called where a secret is
put on the wire or into storage.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from ledgerlink.core.errors import ReauthRequiredError

# Tokens last 30 minutes unless the server says otherwise
DEFAULT_TOKEN_LIFETIME = timedelta(minutes=30)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialKind(str, Enum):
    AUTHORIZATION_CODE = "authorization_code"
    CLIENT_CREDENTIALS = "client_credentials"


class TokenPair(BaseModel):
    """Access token plus the single-use refresh token that renews it."""

    access_token: SecretStr
    refresh_token: Optional[SecretStr] = None
    expires_at: datetime
    scopes: List[str] = Field(default_factory=list)
    kind: CredentialKind = CredentialKind.AUTHORIZATION_CODE
    consumed: bool = Field(default=False, exclude=True)

    @classmethod
    def from_response(
        cls,
        payload: Dict[str, Any],
        kind: CredentialKind = CredentialKind.AUTHORIZATION_CODE,
        now: Optional[datetime] = None,
    ) -> "TokenPair":
        """Build a pair from a token endpoint response.

        Raises:
            KeyError: If the response has no access token
        """
        now = now or utcnow()
        expires_in = payload.get("expires_in")
        lifetime = timedelta(seconds=int(expires_in)) if expires_in is not None else DEFAULT_TOKEN_LIFETIME
        refresh = payload.get("refresh_token")
        scope = payload.get("scope") or ""
        return cls(
            access_token=SecretStr(payload["access_token"]),
            refresh_token=SecretStr(refresh) if refresh else None,
            expires_at=now + lifetime,
            scopes=scope.split(),
            kind=kind,
        )

    def remaining(self, now: Optional[datetime] = None) -> timedelta:
        return self.expires_at - (now or utcnow())

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.remaining(now) <= timedelta(0)

    def needs_refresh(self, margin: timedelta, now: Optional[datetime] = None) -> bool:
        return self.remaining(now) <= margin

    def consume_refresh_token(self) -> str:
        """Take the refresh token for a refresh call.

        A refresh token is valid for exactly one exchange, so the pair is
        marked consumed before the request is sent.

        Raises:
            ReauthRequiredError: If there is no refresh token or it was used
        """
        if self.refresh_token is None:
            raise ReauthRequiredError("No refresh token available")
        if self.consumed:
            raise ReauthRequiredError("Refresh token already used")
        self.consumed = True
        return self.refresh_token.get_secret_value()

    def to_storage(self) -> Dict[str, Any]:
        """Serializable form for the credential store."""
        return {
            "access_token": self.access_token.get_secret_value(),
            "refresh_token": self.refresh_token.get_secret_value() if self.refresh_token else None,
            "expires_at": self.expires_at.isoformat(),
            "scopes": list(self.scopes),
            "kind": self.kind.value,
        }

    @classmethod
    def from_storage(cls, data: Dict[str, Any]) -> "TokenPair":
        return cls.model_validate(data)


class ClientCredentialsSecret(BaseModel):
    """Machine credentials for the client-credentials grant. Never persisted."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: SecretStr
    scopes: List[str] = Field(default_factory=list)


@dataclass(frozen=True)
class Token:
    """A bearer token handed to the request pipeline.

    ``generation`` identifies which credential produced it so a 401 can tell
    whether the credential has already been replaced by another caller.
    """

    value: SecretStr
    expires_at: datetime
    generation: int

    def bearer(self) -> str:
        return f"Bearer {self.value.get_secret_value()}"
