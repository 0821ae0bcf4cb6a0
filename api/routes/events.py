"""
Event ingestion endpoints
"""

from fastapi import APIRouter, Depends, Request, status
from api.dependencies import get_event_service, get_tenant_id
from ingestion.services.event_service import EventIngestionService
from schemas.api import IngestEventRequest, IngestEventResponse, EventCount, EventsSummaryResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("", response_model=IngestEventResponse, status_code=status.HTTP_202_ACCEPTED)
async def ingest_event(
    body: IngestEventRequest,
    request: Request,
    tenant_id: str = Depends(get_tenant_id),
    service: EventIngestionService = Depends(get_event_service)
):
    """
    Accept one event for asynchronous materialization.

    - 202 once the event is enqueued
    - 409 if (tenant, event_id) was already accepted
    """
    request_id = getattr(request.state, "request_id", "-")
    logger.debug(f"[{request_id}] POST /events tenant={tenant_id} event_id={body.event_id}")

    await service.ingest(
        tenant_id=tenant_id,
        event_id=body.event_id,
        event_name=body.event_name,
        properties=body.properties,
        event_time=body.event_time
    )
    return IngestEventResponse(event_id=body.event_id)


@router.get("/summary", response_model=EventsSummaryResponse)
async def events_summary(
    tenant_id: str = Depends(get_tenant_id),
    service: EventIngestionService = Depends(get_event_service)
):
    counts = await service.summary(tenant_id)
    items = [
        EventCount(event_name=name, count=count)
        for name, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
    return EventsSummaryResponse(counts=items, total=sum(counts.values()))
