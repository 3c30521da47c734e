"""
API Dependencies

Application context lookup and bearer token authorization. Tokens are HS256
JWTs whose "scopes" (or space separated "scope") claim must contain the
capability a route requires.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Tuple

import jwt
import structlog
from fastapi import HTTPException, Request, status

from discount_analytics.config import get_settings
from discount_analytics.context import AppContext

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    """Caller identity from a verified token"""
    sub: str
    scopes: Tuple[str, ...] = ()
    claims: Dict[str, Any] = field(default_factory=dict, compare=False)


def get_context(request: Request) -> AppContext:
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not initialized")
    return context


def _bearer_token(request: Request) -> str:
    header = (request.headers.get("Authorization") or "").strip()
    if not header.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token = header.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def _scopes(claims: Dict[str, Any]) -> set:
    raw = claims.get("scopes", claims.get("scope", ""))
    if isinstance(raw, str):
        return {s for s in raw.split() if s}
    if isinstance(raw, (list, tuple, set)):
        return {str(s) for s in raw if str(s)}
    return set()


def require_capability(capability_name: str) -> Callable[[Request], Principal]:
    """
    Dependency enforcing a capability from SecuritySettings.
    
    Args:
        capability_name: Settings attribute holding the scope,
            e.g. "reports_capability"
    """
    def dependency(request: Request) -> Principal:
        security = get_settings().security
        capability = getattr(security, capability_name)
        token = _bearer_token(request)
        
        try:
            claims = jwt.decode(
                token,
                security.jwt_secret_key.get_secret_value(),
                algorithms=[security.jwt_algorithm],
                options={"verify_aud": False},
            )
        except jwt.PyJWTError as e:
            logger.info("Rejected token", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e
        
        scopes = _scopes(claims)
        if capability not in scopes:
            logger.info("Missing capability", sub=claims.get("sub"), capability=capability)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        
        return Principal(sub=str(claims.get("sub", "")), scopes=tuple(sorted(scopes)), claims=claims)
    
    return dependency


require_reports_access = require_capability("reports_capability")
require_capture_access = require_capability("capture_capability")
