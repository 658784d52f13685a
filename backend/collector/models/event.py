"""Event model - discrete state changes reported by an agent."""
from sqlalchemy import Column, BigInteger, Integer, String, ForeignKey, Index

from ..database import Base


class Event(Base):
    """A reported event, tied to a known service of the host."""

    __tablename__ = "event"
    __table_args__ = (
        Index("idx_event_host_collected", "host_id", "collected_sec"),
    )

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    host_id = Column(BigInteger, ForeignKey("host.id"), nullable=False)
    service_id = Column(BigInteger, ForeignKey("service.id"), nullable=False)
    collected_sec = Column(BigInteger, nullable=False)
    collected_usec = Column(Integer, default=0)
    service_name_id = Column(BigInteger, ForeignKey("name.id"), nullable=False)
    service_type = Column(Integer, default=0)
    event = Column(Integer, default=0)  # Monit event id bit
    state = Column(Integer, default=0)  # 0 succeeded, 1 failed, 2 changed, 3 changed not
    action = Column(Integer, default=0)
    message = Column(String, default="")
    active = Column(Integer, default=1)
