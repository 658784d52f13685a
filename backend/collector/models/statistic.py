"""Statistic models - metric series per service and their points."""
from sqlalchemy import Column, BigInteger, Integer, Float, String, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base

# StatisticDescriptor.data_type for values stored in statistics_double
DATA_TYPE_DOUBLE = 5


class StatisticDescriptor(Base):
    """A named metric series, created the first time a value is seen."""

    __tablename__ = "statistics"
    __table_args__ = (
        UniqueConstraint("service_id", "descriptor", name="uq_statistics_service_descriptor"),
    )

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    service_id = Column(BigInteger, ForeignKey("service.id"), nullable=False)
    type = Column(Integer, default=0)
    data_type = Column(Integer, default=DATA_TYPE_DOUBLE)
    descriptor = Column(String, nullable=False)  # e.g. load_avg01

    # Relationships
    service = relationship("Service", back_populates="statistics")
    points = relationship("StatisticPoint", back_populates="statistic")


class StatisticPoint(Base):
    """One observed value. Append-only; timestamps may repeat."""

    __tablename__ = "statistics_double"
    __table_args__ = (
        Index("idx_statistics_double_collected", "statistics_id", "collected_sec"),
    )

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    statistics_id = Column(BigInteger, ForeignKey("statistics.id"), nullable=False)
    collected_sec = Column(BigInteger, nullable=False)
    value = Column(Float, nullable=False)

    # Relationship
    statistic = relationship("StatisticDescriptor", back_populates="points")
