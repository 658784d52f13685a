"""Collector endpoint - Monit agents POST their status reports here."""
import logging

from fastapi import APIRouter, HTTPException, Request

from ..config import settings
from ..errors import MalformedPayload, PayloadTooLarge, StorageFailure
from ..schemas.ingestion import IngestionSummary
from ..services.ingestion import ingestion_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/collector", tags=["collector"])


@router.post("", response_model=IngestionSummary)
async def collect(request: Request):
    """Receive one raw XML report from a Monit agent."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > settings.max_payload_bytes:
        raise HTTPException(status_code=413, detail="Report too large")

    body = await request.body()
    if not body:
        raise HTTPException(status_code=400, detail="No data received")

    source_ip = request.client.host if request.client else ""
    logger.info(f"Received data from {source_ip}")

    try:
        return await ingestion_service.submit(body, source_ip)
    except PayloadTooLarge as e:
        raise HTTPException(status_code=413, detail=str(e))
    except MalformedPayload as e:
        logger.warning(f"Rejected malformed report from {source_ip}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except StorageFailure:
        raise HTTPException(status_code=500, detail="Ingestion failed")
