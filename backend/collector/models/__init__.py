"""Database models."""
from .name import Name
from .host import Host, HOST_STATUS_ACTIVE
from .service import Service
from .statistic import StatisticDescriptor, StatisticPoint, DATA_TYPE_DOUBLE
from .event import Event
from .service_group import ServiceGroup, servicegroup_members

__all__ = [
    "Name",
    "Host",
    "HOST_STATUS_ACTIVE",
    "Service",
    "StatisticDescriptor",
    "StatisticPoint",
    "DATA_TYPE_DOUBLE",
    "Event",
    "ServiceGroup",
    "servicegroup_members",
]
