import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Security, status

from speedprice.api.dependencies import (
    get_favorites_service,
    get_history_service,
    get_local_catalog,
    get_sync_engine,
)
from speedprice.core.security import get_operator
from speedprice.domain.models import SyncReport
from speedprice.services.favorites_service import FavoritesService
from speedprice.services.history_service import HistoryService
from speedprice.services.local_catalog import LocalCatalog
from speedprice.services.sync_service import SyncEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin"])

OperatorDep = Annotated[str, Security(get_operator)]


@router.post("/sync", response_model=SyncReport)
async def run_sync(
    operator: OperatorDep,
    engine: Annotated[SyncEngine, Depends(get_sync_engine)],
    full: bool = False,
) -> SyncReport:
    """
    Gleicht den lokalen Katalog mit dem Server-of-Record ab (Push, dann Pull).
    Nicht erreichbare Server führen zu 0 statt zu einem Fehler.
    """
    return await engine.sync(full=full)


@router.delete("/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_data(
    operator: OperatorDep,
    catalog: Annotated[LocalCatalog, Depends(get_local_catalog)],
    history: Annotated[HistoryService, Depends(get_history_service)],
    favorites: Annotated[FavoritesService, Depends(get_favorites_service)],
) -> None:
    """Löscht Produkte, Verlauf und Favoriten."""
    await catalog.clear()
    await history.clear()
    await favorites.clear()
    logger.warning("All data reset by operator '%s'", operator)
