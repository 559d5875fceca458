"""Bearer token verification against the external identity provider.

Tokens are issued by the identity provider; this service only verifies
them.  The provider's service-account credential can be supplied as raw
JSON, base64-encoded JSON, or as individual settings, and the verifying
client is created lazily, exactly once per process.
"""
import asyncio
import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Optional

from jose import JWTError, jwt

from .config import Settings, settings
from .exceptions import AuthenticationError
from ..models.user import SystemRole

logger = logging.getLogger(__name__)


class IdentityConfigurationError(RuntimeError):
    """Raised when the service-account credential cannot be parsed"""


@dataclass(frozen=True)
class IdentityCredentials:
    project_id: str
    client_email: Optional[str] = None
    private_key: Optional[str] = None


@dataclass(frozen=True)
class VerifiedIdentity:
    uid: str
    email: Optional[str]
    role: Optional[SystemRole]


def _decode_service_account(raw: str) -> dict:
    raw = raw.strip()
    if not raw.startswith("{"):
        try:
            raw = base64.b64decode(raw, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise IdentityConfigurationError("Service account is neither JSON nor base64 JSON") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise IdentityConfigurationError("Service account JSON is malformed") from exc


def load_identity_credentials(config: Settings) -> Optional[IdentityCredentials]:
    """Build credentials from settings; returns None when nothing is configured"""
    if config.IDENTITY_SERVICE_ACCOUNT:
        data = _decode_service_account(config.IDENTITY_SERVICE_ACCOUNT)
    elif config.IDENTITY_PROJECT_ID or config.IDENTITY_CLIENT_EMAIL or config.IDENTITY_PRIVATE_KEY:
        data = {
            "project_id": config.IDENTITY_PROJECT_ID,
            "client_email": config.IDENTITY_CLIENT_EMAIL,
            "private_key": config.IDENTITY_PRIVATE_KEY,
        }
    else:
        return None

    project_id = data.get("project_id")
    if not project_id:
        raise IdentityConfigurationError("Service account is missing project_id")

    private_key = data.get("private_key")
    if private_key:
        # env files often carry the PEM with escaped newlines
        private_key = private_key.replace("\\n", "\n")

    return IdentityCredentials(
        project_id=project_id,
        client_email=data.get("client_email"),
        private_key=private_key,
    )


class IdentityProvider:
    """Verifies bearer tokens and maps their claims onto a system role"""

    def __init__(self, credentials: Optional[IdentityCredentials], config: Settings):
        self.credentials = credentials
        self.algorithm = config.ALGORITHM
        self.issuer = config.IDENTITY_ISSUER
        if self.algorithm.startswith("HS"):
            self._key = config.SECRET_KEY
        else:
            if not credentials or not credentials.private_key:
                raise IdentityConfigurationError(
                    f"{self.algorithm} verification needs the service account private key"
                )
            self._key = credentials.private_key

    def verify_token(self, token: str) -> VerifiedIdentity:
        options = {"verify_aud": self.credentials is not None}
        try:
            claims = jwt.decode(
                token,
                self._key,
                algorithms=[self.algorithm],
                audience=self.credentials.project_id if self.credentials else None,
                issuer=self.issuer,
                options=options,
            )
        except JWTError as exc:
            logger.info(f"Rejected bearer token: {exc}")
            raise AuthenticationError("Invalid or expired token", code="INVALID_TOKEN")

        uid = claims.get("sub") or claims.get("uid")
        if not uid:
            raise AuthenticationError("Token has no subject", code="INVALID_TOKEN")

        role = None
        raw_role = claims.get("role")
        if raw_role:
            try:
                role = SystemRole(str(raw_role).upper())
            except ValueError:
                logger.warning(f"Ignoring unknown role claim {raw_role!r} for {uid}")

        return VerifiedIdentity(uid=uid, email=claims.get("email"), role=role)


_provider: Optional[IdentityProvider] = None
_provider_lock = asyncio.Lock()


async def get_identity_provider() -> IdentityProvider:
    """Return the process-wide provider, creating it on first use"""
    global _provider
    if _provider is not None:
        return _provider
    async with _provider_lock:
        if _provider is None:
            credentials = load_identity_credentials(settings)
            _provider = IdentityProvider(credentials, settings)
            logger.info("Identity provider client initialised")
    return _provider


def reset_identity_provider() -> None:
    global _provider, _provider_lock
    _provider = None
    _provider_lock = asyncio.Lock()
