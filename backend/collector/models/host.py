"""Host model - one monitored machine, keyed by its agent-assigned id."""
from sqlalchemy import Column, BigInteger, Integer, Float, String, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base

# Host.status values
HOST_STATUS_ACTIVE = 0


class Host(Base):
    """A Monit agent instance and the machine it runs on."""

    __tablename__ = "host"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    created_at = Column(BigInteger, nullable=False)  # epoch seconds
    updated_at = Column(BigInteger, nullable=False)
    incarnation = Column(BigInteger, default=0)  # Monit start time, changes on restart
    status = Column(Integer, default=HOST_STATUS_ACTIVE)
    name_id = Column(BigInteger, ForeignKey("name.id"), nullable=False)
    monit_id = Column(String, nullable=False, unique=True, index=True)
    description = Column(String, default="")

    # Advertised httpd (in) and observed connection (out)
    ip_addr_in = Column(String, nullable=True)
    ip_addr_out = Column(String, nullable=True)
    port_in = Column(Integer, nullable=True)
    port_out = Column(Integer, nullable=True)
    ssl_in = Column(Integer, default=0)
    ssl_out = Column(Integer, default=0)
    username = Column(String, default="")
    password = Column(String, default="")

    poll = Column(Integer, default=120)  # seconds between agent cycles
    start_delay = Column(Integer, default=0)
    control_file_name_id = Column(BigInteger, ForeignKey("name.id"), nullable=True)
    status_modified = Column(BigInteger, nullable=True)
    status_heartbeat = Column(BigInteger, default=0)  # last report received
    version = Column(String, default="")

    platform_name = Column(String, default="")
    platform_release = Column(String, default="")
    platform_version = Column(String, default="")
    platform_machine = Column(String, default="")
    platform_cpu = Column(Integer, default=0)
    platform_memory = Column(BigInteger, default=0)  # KB
    platform_swap = Column(BigInteger, default=0)  # KB
    platform_uptime = Column(Float, default=0)

    # Derived from the host's stored services after every report
    service_up = Column(Integer, default=0)
    service_down = Column(Integer, default=0)
    service_unmonitor_auto = Column(Integer, default=0)
    service_unmonitor_manual = Column(Integer, default=0)

    # Relationships
    services = relationship("Service", back_populates="host")
