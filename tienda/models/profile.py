from sqlalchemy import Column, DateTime, String

from ..db import Base
from ..utils.dates import utcnow


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(String(64), primary_key=True)  # id del proveedor de auth
    email = Column(String(200))
    full_name = Column(String(200))
    role = Column(String(20), default="user", nullable=False)  # user | admin
    created_at = Column(DateTime(timezone=True), default=utcnow)
