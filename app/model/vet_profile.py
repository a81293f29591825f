"""
Vet profile model. Role-specific sub-profile, one per vet user.
"""
from sqlalchemy import Column, String, Text, Float, DateTime, ForeignKey, JSON, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base


class VetProfile(Base):
    __tablename__ = "vet_profiles"

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    specialties = Column(JSON, nullable=False, default=list)
    clinic_name = Column(String, nullable=True)
    practice_id = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    rating = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="vet_profile")
