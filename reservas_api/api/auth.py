"""Service key authentication"""

import hmac
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from reservas_api.config import settings

apikey_header = APIKeyHeader(name="apikey", auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


def _matches(candidate: Optional[str], expected: str) -> bool:
    return bool(candidate) and hmac.compare_digest(candidate.encode(), expected.encode())


async def verify_api_key(
    apikey: Optional[str] = Depends(apikey_header),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """Require the configured service key via ``apikey`` or a bearer token"""
    expected = settings.api_key
    if not expected:
        return

    token = credentials.credentials if credentials else None
    if _matches(apikey, expected) or _matches(token, expected):
        return

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Chave de API inválida ou ausente",
        headers={"WWW-Authenticate": "Bearer"},
    )
