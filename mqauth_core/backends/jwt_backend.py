"""
JWT Backend
===========
Stateless decisions from signed JSON Web Tokens.

The token travels in the MQTT username (default) or password field. Claims:

    sub (jwt_userfield)          identity; must be present
    superuser (jwt_superuser_claim)   true grants superuser
    acl (jwt_acl_claim)          [{"topic": "sensors/%u/#", "acc": 1}, ...]

ACL and superuser checks need the token, so they only work when the token is
carried in the username.
"""

from typing import Any, Dict, List, Mapping, Optional

import jwt
import structlog

from mqauth_core.config import option_float, option_list, option_str, require_options
from mqauth_core.errors import ConfigError
from mqauth_core.topics import Access, AclRequest, AclRule, rules_permit
from .base import BackendKind

logger = structlog.get_logger(__name__)

TOKEN_FIELDS = ("username", "password")


class JWTBackend:
    """JWT issuer backend."""

    kind = BackendKind.JWT

    def __init__(self, options: Mapping[str, Any], name: str = "jwt"):
        require_options(options, ["jwt_secret"], backend=name)

        self.name = name
        self.secret = option_str(options, "jwt_secret")
        self.algorithms = option_list(options, "jwt_algorithms") or ["HS256"]
        self.userfield = option_str(options, "jwt_userfield", "sub")
        self.superuser_claim = option_str(options, "jwt_superuser_claim", "superuser")
        self.acl_claim = option_str(options, "jwt_acl_claim", "acl")
        self.audience = option_str(options, "jwt_audience")
        self.issuer = option_str(options, "jwt_issuer")
        self.leeway = option_float(options, "jwt_leeway", 0.0, backend=name)

        self.token_field = option_str(options, "jwt_token_field", "username").lower()
        if self.token_field not in TOKEN_FIELDS:
            raise ConfigError(
                f"jwt_token_field must be one of {TOKEN_FIELDS}",
                backend=name,
                option="jwt_token_field",
            )

    def decode(self, token: str) -> Optional[Dict[str, Any]]:
        """Validate a token. Returns its claims, or None if it is not acceptable."""
        if not token:
            return None
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                leeway=self.leeway,
                options={"verify_aud": self.audience is not None},
            )
        except jwt.PyJWTError as e:
            logger.info("jwt_rejected", backend=self.name, reason=type(e).__name__)
            return None

        user = claims.get(self.userfield)
        if not isinstance(user, str) or not user:
            logger.info("jwt_rejected", backend=self.name, reason="missing_user_claim")
            return None
        return claims

    def _acl_rules(self, claims: Dict[str, Any]) -> List[AclRule]:
        user = claims[self.userfield]
        rules: List[AclRule] = []
        for entry in claims.get(self.acl_claim) or []:
            if not isinstance(entry, dict) or not isinstance(entry.get("topic"), str):
                continue
            try:
                access = Access.parse(entry.get("acc", Access.READWRITE))
            except ValueError:
                continue
            rules.append(AclRule(pattern=entry["topic"], access=access, username=user))
        return rules

    async def authenticate(self, username: str, password: str) -> bool:
        if self.token_field == "username":
            return self.decode(username) is not None

        claims = self.decode(password)
        return claims is not None and claims[self.userfield] == username

    async def is_superuser(self, username: str) -> bool:
        if self.token_field != "username":
            return False
        claims = self.decode(username)
        return claims is not None and claims.get(self.superuser_claim) is True

    async def check_acl(self, username: str, topic: str, client_id: str, access: Access) -> bool:
        if self.token_field != "username":
            return False
        claims = self.decode(username)
        if claims is None:
            return False

        # Placeholders resolve to the identity inside the token
        request = AclRequest(
            username=claims[self.userfield],
            topic=topic,
            client_id=client_id,
            access=access,
        )
        return rules_permit(self._acl_rules(claims), request)

    async def close(self) -> None:
        return None
