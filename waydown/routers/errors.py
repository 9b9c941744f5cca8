import logging

from fastapi import APIRouter, Request

from ..schemas import MessageResponse, NotFoundReport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/errors", tags=["errors"])


@router.post("/404", response_model=MessageResponse)
async def report_not_found(payload: NotFoundReport, request: Request):
    """Record a client-side 404 so broken links show up in the logs"""
    client = request.client.host if request.client else "unknown"
    logger.warning(
        f"404 reported for path={payload.path} message={payload.message or ''} client={client}")
    return {"message": "404 error logged successfully"}
