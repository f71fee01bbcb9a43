from __future__ import annotations

import logging
from dataclasses import dataclass
from http.cookies import CookieError, SimpleCookie

from jose import JWTError, jwt

logger = logging.getLogger(__name__)

SESSION_COOKIE = "_auth.t"
DEFAULT_ISSUER = "querylab"
ALGORITHM = "HS256"


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    email: str
    name: str | None
    token: str


def extract_token(cookie_header: str | None, authorization: str | None = None) -> str | None:
    if cookie_header:
        cookies = SimpleCookie()
        try:
            cookies.load(cookie_header)
        except CookieError:
            logger.warning("extract_token: malformed cookie header")
        else:
            morsel = cookies.get(SESSION_COOKIE)
            if morsel is not None and morsel.value:
                return morsel.value

    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return None


def verify_session_token(
    token: str, secret: str, issuer: str = DEFAULT_ISSUER
) -> AuthContext | None:
    """Return the caller identity for a signed session token, or ``None``.

    The token must be HS256-signed with ``secret``, unexpired, and carry an
    ``email`` claim. ``iss`` is only compared when the token has one.
    """
    if not token or not secret:
        return None
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"verify_aud": False, "verify_iss": False},
        )
    except JWTError as exc:
        logger.info("verify_session_token: rejected: %s", exc)
        return None

    token_issuer = claims.get("iss")
    if token_issuer is not None and token_issuer != issuer:
        logger.info("verify_session_token: rejected issuer")
        return None

    email = claims.get("email")
    if not isinstance(email, str) or not email:
        logger.info("verify_session_token: missing email claim")
        return None

    name = claims.get("name")
    return AuthContext(
        user_id=email,
        email=email,
        name=name if isinstance(name, str) else None,
        token=token,
    )
