import enum

from db.database import Base
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func


class EventType(str, enum.Enum):
    CONCERT = "Concert"
    FESTIVAL = "Festival"
    TOUR = "Tour"
    RECORDING = "Recording"
    INTERVIEW = "Interview"
    OTHER = "Other"


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    event_type = Column(
        Enum(EventType, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False,
        default=EventType.CONCERT,
        index=True,
    )
    venue = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    ticket_price = Column(Numeric(10, 2), nullable=True)
    ticket_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    band_id = Column(
        Integer,
        ForeignKey("bands.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    country_id = Column(
        Integer,
        ForeignKey("countries.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    version = Column(Integer, nullable=False, default=1, server_default="1", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    band = relationship("Band", back_populates="events")
    country = relationship("Country", back_populates="events")

    def __repr__(self):
        return f"<Event(id={self.id}, title='{self.title}', version={self.version})>"
