"""
Dataset catalog read endpoints
"""

from fastapi import APIRouter, Depends, Query
from api.dependencies import get_dataset_repository, get_tenant_id
from ingestion.repositories.dataset_repository import DatasetRepository, DEFAULT_LIST_LIMIT, clamp_limit
from models.base import DatasetSourceType
from schemas.api import DatasetListResponse, DatasetResponse
from typing import Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/datasets", tags=["Datasets"])


@router.get("", response_model=DatasetListResponse)
async def list_datasets(
    q: Optional[str] = Query(None, description="Substring match on dataset name"),
    source_type: Optional[DatasetSourceType] = Query(None, description="Filter by source type"),
    limit: int = Query(DEFAULT_LIST_LIMIT, description="Page size, clamped to 1..100"),
    offset: int = Query(0, ge=0),
    tenant_id: str = Depends(get_tenant_id),
    repo: DatasetRepository = Depends(get_dataset_repository)
):
    datasets = await repo.list_by_tenant(
        tenant_id, query=q, source_type=source_type, limit=limit, offset=offset
    )
    return DatasetListResponse(
        items=[DatasetResponse.model_validate(d) for d in datasets],
        limit=clamp_limit(limit),
        offset=offset
    )


@router.get("/{dataset_id}", response_model=DatasetResponse)
async def get_dataset(
    dataset_id: str,
    tenant_id: str = Depends(get_tenant_id),
    repo: DatasetRepository = Depends(get_dataset_repository)
):
    dataset = await repo.find_by_id(tenant_id, dataset_id)
    return DatasetResponse.model_validate(dataset)
