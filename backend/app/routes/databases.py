"""Region status API - reachability and file listing for every region."""
from fastapi import APIRouter, Depends

from app.database import StorageGateway, get_gateway
from app.schemas.status import RegionStatus
from app.services.status_aggregator import list_statuses

router = APIRouter(tags=["databases"])


@router.get("/databases", response_model=list[RegionStatus])
async def list_databases(gateway: StorageGateway = Depends(get_gateway)):
    """Probe all regions concurrently. Unreachable regions are reported, not raised."""
    return await list_statuses(gateway)
