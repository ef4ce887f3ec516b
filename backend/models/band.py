from db.database import Base
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func


class Band(Base):
    __tablename__ = "bands"

    id = Column(Integer, primary_key=True, index=True)
    # Unique: a rename onto an existing name surfaces as IntegrityError
    name = Column(String(255), nullable=False, unique=True)
    genre = Column(String(100), nullable=True, index=True)
    year_formed = Column(Integer, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    website = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    country_id = Column(
        Integer,
        ForeignKey("countries.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # Optimistic locking: starts at 1, bumped by every conditional write
    version = Column(Integer, nullable=False, default=1, server_default="1", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    country = relationship("Country", back_populates="bands")
    albums = relationship("Album", back_populates="band", cascade="all, delete-orphan")
    events = relationship("Event", back_populates="band", cascade="all, delete-orphan")
    members = relationship("Member", back_populates="band", cascade="all, delete-orphan")
    songs = relationship("Song", back_populates="band", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Band(id={self.id}, name='{self.name}', version={self.version})>"
