from db.database import Base
from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

album_songs = Table(
    "album_songs",
    Base.metadata,
    Column("album_id", Integer, ForeignKey("albums.id", ondelete="CASCADE"), primary_key=True),
    Column("song_id", Integer, ForeignKey("songs.id", ondelete="CASCADE"), primary_key=True),
)


class Album(Base):
    __tablename__ = "albums"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    release_date = Column(Date, nullable=True, index=True)
    genre = Column(String(100), nullable=True, index=True)
    label = Column(String(255), nullable=True)
    producer = Column(String(255), nullable=True)
    website = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    cover_image_url = Column(String(500), nullable=True)
    total_tracks = Column(Integer, nullable=True)
    band_id = Column(
        Integer,
        ForeignKey("bands.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version = Column(Integer, nullable=False, default=1, server_default="1", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    band = relationship("Band", back_populates="albums")
    songs = relationship("Song", secondary=album_songs, back_populates="albums")

    def __repr__(self):
        return f"<Album(id={self.id}, name='{self.name}', version={self.version})>"
