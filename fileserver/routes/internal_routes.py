"""Internal maintenance routes."""

from fastapi import APIRouter, Depends

from common.logging_config import get_logger
from chunkstore.store import Store
from fileserver.schemas.files import SweepResponse
from fileserver.service_locator import get_store

logger = get_logger(__name__)

router = APIRouter(prefix="/internal", tags=["Internal"])


@router.post("/gc/sweep", response_model=SweepResponse)
def sweep_chunks(store: Store = Depends(get_store)):
    """
    Run one garbage collection pass now.
    """
    reclaimed = store.sweep()
    logger.info(f"On-demand GC sweep reclaimed {reclaimed} chunks")
    return SweepResponse(reclaimed=reclaimed)
