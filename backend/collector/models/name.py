"""Name model - interned strings shared by hosts, services and groups."""
from sqlalchemy import Column, BigInteger, String

from ..database import Base


class Name(Base):
    """An interned string; the id never changes once assigned."""

    __tablename__ = "name"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    name = Column(String, nullable=False, unique=True)
