from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func
from stationsportal.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default="station_manager")  # admin, vo_chief, station_manager, assistant_manager
    org_unit_id = Column(Integer, ForeignKey("org_units.id"), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
