"""
FastAPI dependencies: shared resources, sessions, tenant scope and services
"""

from typing import AsyncGenerator
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession
import redis.asyncio as redis

from core.exceptions import ValidationError
from core.resources import Resources
from ingestion.repositories.dataset_repository import DatasetRepository
from ingestion.services.event_service import EventIngestionService
from ingestion.services.upload_service import UploadService


def get_resources(request: Request) -> Resources:
    """Collaborators built once in the startup hook"""
    return request.app.state.resources


async def get_db(resources: Resources = Depends(get_resources)) -> AsyncGenerator[AsyncSession, None]:
    async with resources.session_factory() as session:
        yield session


def get_redis(resources: Resources = Depends(get_resources)) -> redis.Redis:
    return resources.redis


def get_tenant_id(x_tenant_id: str = Header(..., alias="X-Tenant-ID")) -> str:
    """Tenant scope comes from the gateway-set X-Tenant-ID header"""
    tenant_id = x_tenant_id.strip()
    if not tenant_id:
        raise ValidationError(
            "X-Tenant-ID header must not be blank",
            context={"field_name": "X-Tenant-ID", "validation_rule": "non_blank"}
        )
    return tenant_id


def get_event_service(resources: Resources = Depends(get_resources)) -> EventIngestionService:
    return EventIngestionService(resources.event_queue)


def get_upload_service(
    db: AsyncSession = Depends(get_db),
    resources: Resources = Depends(get_resources)
) -> UploadService:
    return UploadService(db, resources.object_store, resources.upload_queue)


def get_dataset_repository(db: AsyncSession = Depends(get_db)) -> DatasetRepository:
    return DatasetRepository(db)
