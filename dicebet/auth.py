import hashlib
import hmac
import re
import time

from fastapi import Header, HTTPException

from .config import ADMIN_SECRET, SECRET_KEY, TOKEN_TTL_SECONDS

ACCOUNT_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def valid_account(account: str) -> bool:
    return bool(ACCOUNT_PATTERN.match(account))


def _signature(claims: str) -> str:
    return hmac.new(SECRET_KEY.encode(), claims.encode(), hashlib.sha256).hexdigest()


def _unauthorized(detail: str = "Invalid token") -> HTTPException:
    return HTTPException(status_code=401, detail=detail)


def sign_token(account: str, expires_sec: int = TOKEN_TTL_SECONDS) -> str:
    """Issue ``account:issued:expires:signature`` for the given account."""
    if not valid_account(account):
        raise ValueError(f"Invalid account name: {account!r}")
    issued = int(time.time())
    claims = f"{account}:{issued}:{issued + expires_sec}"
    return f"{claims}:{_signature(claims)}"


def verify_token(token: str) -> str:
    """Return the account a token speaks for; forged tokens never reach the expiry check."""
    claims, _, sig = token.rpartition(":")
    expected = _signature(claims).encode()
    if claims.count(":") != 2 or not hmac.compare_digest(expected, sig.encode()):
        raise _unauthorized()
    account, _, expires = claims.split(":")
    if not valid_account(account) or not expires.isdigit():
        raise _unauthorized()
    if int(expires) < time.time():
        raise _unauthorized("Token expired")
    return account


def get_caller(authorization: str | None = Header(None)) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise _unauthorized("Unauthorized")
    return verify_token(token)


def require_admin(admin_secret: str | None = Header(None)):
    if admin_secret is None:
        raise HTTPException(status_code=401, detail="Admin unauthorized")
    if not hmac.compare_digest(admin_secret.encode(), ADMIN_SECRET.encode()):
        raise HTTPException(status_code=401, detail="Admin unauthorized")
