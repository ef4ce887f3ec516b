from db.database import Base
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .album import album_songs


class Song(Base):
    __tablename__ = "songs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=True)  # seconds
    track_number = Column(Integer, nullable=True)
    lyrics = Column(Text, nullable=True)
    video_url = Column(String(500), nullable=True)
    band_id = Column(
        Integer,
        ForeignKey("bands.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    band = relationship("Band", back_populates="songs")
    albums = relationship("Album", secondary=album_songs, back_populates="songs")

    def __repr__(self):
        return f"<Song(id={self.id}, title='{self.title}')>"
