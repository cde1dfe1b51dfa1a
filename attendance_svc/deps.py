from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, AsyncGenerator
from fastapi import Depends, Header, HTTPException, status
import time
import httpx
import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .core.clock import Clock, get_clock as _build_clock
from .core.config import get_settings

settings = get_settings()

_JWKS: Dict[str, Any] | None = None
_JWKS_TS: float = 0.0
_JWKS_TTL: int = 3600

async def fetch_jwks() -> Dict[str, Any]:
    global _JWKS, _JWKS_TS
    now = time.time()
    if _JWKS is None or (now - _JWKS_TS) > _JWKS_TTL:
        async with httpx.AsyncClient() as client:
            r = await client.get(settings.auth_jwks_url, timeout=5.0)
            r.raise_for_status()
            _JWKS = r.json()
            _JWKS_TS = now
    return _JWKS

async def get_signing_key():
    from jwt.algorithms import RSAAlgorithm
    jwks = await fetch_jwks()
    key = jwks["keys"][0]
    return RSAAlgorithm.from_jwk(key)

async def get_claims(authorization: str | None = Header(default=None)) -> Dict[str, Any]:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    token = authorization.split(" ", 1)[1].strip()
    key = await get_signing_key()
    try:
        payload = jwt.decode(
            token, key=key, algorithms=["RS256"], issuer=settings.token_issuer,
            options={"verify_aud": False},
        )
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if "sub" not in payload or "role" not in payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    if "org_ids" not in payload or not isinstance(payload["org_ids"], list):
        payload["org_ids"] = []
    return payload


@dataclass(frozen=True)
class Actor:
    """Identity handed over by the session provider; trusted as given."""
    employee_id: str
    employee_name: str
    company_id: str
    role: str

    @property
    def can_issue(self) -> bool:
        return self.role in settings.issuer_roles

async def get_actor(claims: dict = Depends(get_claims)) -> Actor:
    company_id = claims.get("company_id") or next(iter(claims.get("org_ids") or []), None)
    if not company_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Caller has no company")
    return Actor(
        employee_id=str(claims["sub"]),
        employee_name=str(claims.get("name") or claims["sub"]),
        company_id=str(company_id),
        role=str(claims["role"]),
    )

async def require_issuer(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.can_issue:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Supervisor role required")
    return actor

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for s in get_session():
        yield s

def get_clock() -> Clock:
    return _build_clock()
