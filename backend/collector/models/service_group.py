"""ServiceGroup model for grouping a host's services."""
from sqlalchemy import Column, BigInteger, ForeignKey, Table, UniqueConstraint

from ..database import Base


# Junction table linking groups to member service names
servicegroup_members = Table(
    "servicegroup_service",
    Base.metadata,
    Column("servicegroup_id", BigInteger, ForeignKey("servicegroup.id"), primary_key=True),
    Column("service_name_id", BigInteger, ForeignKey("name.id"), primary_key=True),
)


class ServiceGroup(Base):
    """A named group of services on one host."""

    __tablename__ = "servicegroup"
    __table_args__ = (
        UniqueConstraint("host_id", "name_id", name="uq_servicegroup_host_name"),
    )

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    host_id = Column(BigInteger, ForeignKey("host.id"), nullable=False)
    name_id = Column(BigInteger, ForeignKey("name.id"), nullable=False)
