from typing import Annotated

from fastapi import APIRouter, Depends, Query, Security, status

from speedprice.api.dependencies import get_history_service
from speedprice.core.security import get_operator
from speedprice.domain.models import HistoryEntry, HistoryEntryCreate, HistoryEntryView
from speedprice.services.history_service import HistoryService

router = APIRouter(prefix="/history", tags=["History"])

OperatorDep = Annotated[str, Security(get_operator)]
ServiceDep = Annotated[HistoryService, Depends(get_history_service)]


@router.get("", response_model=list[HistoryEntryView])
async def list_history(
    operator: OperatorDep,
    service: ServiceDep,
    limit: int | None = Query(None, ge=1),
) -> list[HistoryEntryView]:
    """Zuletzt abgefragte Produkte, neueste zuerst."""
    return await service.list_recent(limit)


@router.post("", response_model=HistoryEntry, status_code=status.HTTP_201_CREATED)
async def add_history_entry(
    payload: HistoryEntryCreate,
    operator: OperatorDep,
    service: ServiceDep,
) -> HistoryEntry:
    return await service.add(payload)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_history(operator: OperatorDep, service: ServiceDep) -> None:
    await service.clear()
