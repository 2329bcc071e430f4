import os
from typing import Optional

from fastapi import Header, HTTPException
import jwt


ROLE_ORDER = {"viewer": 0, "editor": 1, "admin": 2}


def _bearer(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header")
    return authorization.split(" ", 1)[1].strip()


def _extract_roles(claims: dict) -> set:
    roles = set()
    for key in ("roles", "role", "scope", "permissions"):
        val = claims.get(key)
        if not val:
            continue
        if isinstance(val, str):
            roles.update(p.strip().lower() for p in val.split() if p.strip())
        elif isinstance(val, (list, tuple)):
            roles.update(str(p).strip().lower() for p in val)
    return roles or {"viewer"}


def _static_role() -> str:
    role = os.getenv("API_ROLE", "admin").strip().lower()
    return role if role in ROLE_ORDER else "admin"


def _decode_hs256(token: str, secret: str) -> dict:
    issuer = os.getenv("OIDC_ISSUER")
    audience = os.getenv("OIDC_AUDIENCE")
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=audience or None,
            issuer=issuer or None,
            options={"verify_signature": True, "verify_exp": True, "verify_aud": bool(audience)},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=403, detail=f"Invalid token: {e}")
    claims = dict(claims)
    claims["roles"] = sorted(_extract_roles(claims))
    return claims


def require_write_auth(authorization: Optional[str] = Header(default=None)) -> dict:
    # Read config per call so tests and redeploys can flip it without a restart
    api_token = os.getenv("API_TOKEN")
    secret = os.getenv("OIDC_HS256_SECRET")

    if not (api_token or secret):
        return {"auth": "dev-mode", "roles": ["admin"]}

    token = _bearer(authorization)
    # Static tokens are opaque; anything with three dot-separated parts is a JWT
    if api_token and token.count(".") < 2:
        if token != api_token:
            raise HTTPException(status_code=403, detail="Invalid token")
        return {"auth": "static-token", "roles": [_static_role()]}
    if secret:
        return _decode_hs256(token, secret)
    raise HTTPException(status_code=403, detail="Invalid token")


def role_required(min_role: str):
    min_role = min_role.lower()
    if min_role not in ROLE_ORDER:
        raise ValueError("Unknown role")

    def _dep(authorization: Optional[str] = Header(default=None)):
        claims = require_write_auth(authorization)
        roles = {r.lower() for r in claims.get("roles", [])}
        if not any(ROLE_ORDER.get(r, -1) >= ROLE_ORDER[min_role] for r in roles):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return claims

    return _dep
