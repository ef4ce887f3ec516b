from db.database import Base
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func


class Country(Base):
    __tablename__ = "countries"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    # ISO 3166-1 alpha-3 / alpha-2 / numeric codes
    code = Column(String(3), nullable=False, unique=True)
    alpha2_code = Column(String(2), nullable=True, unique=True)
    numeric_code = Column(Integer, nullable=True)
    region = Column(String(100), nullable=True)
    subregion = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    bands = relationship("Band", back_populates="country")
    events = relationship("Event", back_populates="country")

    def __repr__(self):
        return f"<Country(id={self.id}, code='{self.code}', name='{self.name}')>"
