"""Ingestion result schema."""
from pydantic import BaseModel


class IngestionSummary(BaseModel):
    """Returned for every committed report."""
    host_id: int
    hostname: str
    service_count: int
    event_count: int
