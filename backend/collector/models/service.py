"""Service model - a unit supervised by Monit on one host."""
from sqlalchemy import Column, BigInteger, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base


class Service(Base):
    """A supervised service; identity is the (host, name) pair."""

    __tablename__ = "service"
    __table_args__ = (
        UniqueConstraint("host_id", "name_id", name="uq_service_host_name"),
    )

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    host_id = Column(BigInteger, ForeignKey("host.id"), nullable=False, index=True)
    name_id = Column(BigInteger, ForeignKey("name.id"), nullable=False)
    type = Column(Integer, default=0)  # ServiceKind
    status = Column(Integer, default=0)  # failure bitmask, 0 = ok
    status_hint = Column(Integer, default=0)
    monitoring_state = Column(Integer, default=0)  # 0 = not monitored
    monitoring_mode = Column(Integer, default=0)  # 0 active, 1 passive, 2 manual
    on_reboot = Column(Integer, default=0)
    status_modified = Column(BigInteger, nullable=True)

    # Relationships
    host = relationship("Host", back_populates="services")
    statistics = relationship("StatisticDescriptor", back_populates="service")
