"""Services for decoding and storing Monit reports."""
from .names import NameInterner
from .hosts import IdentityResolver
from .metrics import MetricRecorder
from .service_reconciler import ServiceReconciler
from .events import EventRecorder
from .groups import GroupReconciler
from .ingestion import IngestionService

__all__ = [
    "NameInterner",
    "IdentityResolver",
    "MetricRecorder",
    "ServiceReconciler",
    "EventRecorder",
    "GroupReconciler",
    "IngestionService",
]
