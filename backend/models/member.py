from db.database import Base
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func


class Member(Base):
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    instrument = Column(String(100), nullable=True)
    join_date = Column(Date, nullable=True)
    leave_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    biography = Column(Text, nullable=True)
    band_id = Column(
        Integer,
        ForeignKey("bands.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    band = relationship("Band", back_populates="members")

    def __repr__(self):
        return f"<Member(id={self.id}, name='{self.name}')>"
