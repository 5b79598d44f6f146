# src/speedprice/core/security.py
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from speedprice.core.config import Settings, get_settings

_API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=True)


async def get_operator(
    api_key: str = Security(_API_KEY_HEADER),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    FastAPI Dependency: Validiert den API-Key und gibt den Bediener zurück.

    Ein Bediener ist ein Arbeitsplatz im Laden, der den Katalog pflegt, etwa
    eine Kasse ("quay_1") oder das Lager ("kho"). Jeder Arbeitsplatz hat einen
    eigenen Key.
    Wirft HTTP 401 bei ungültigem Key.
    """
    operator = settings.api_keys.get(api_key)
    if operator is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key.",
            headers={"WWW-Authenticate": "ApiKey"},
        )
    return operator
