"""
User model. Profile record parallel to the Cognito identity.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from app.core.database import Base

USER_ROLES = ("farmer", "student", "paravet", "vet", "admin")


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, index=True, nullable=False)
    cognito_username = Column(String, unique=True, nullable=False)  # Cognito Username (sub/uuid)
    full_name = Column(String, nullable=False, default="")
    role = Column(String, nullable=False, default="farmer", index=True)
    profile_image_url = Column(String, nullable=True)
    created_by = Column(String, nullable=False, default="self")  # self | admin | federated
    is_active = Column(Boolean, default=True)
    is_banned = Column(Boolean, nullable=False, default=False)
    onboarding_complete = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    vet_profile = relationship(
        "VetProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    presence = relationship(
        "UserPresence", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    memberships = relationship(
        "ConversationMember", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def is_vet(self) -> bool:
        return self.role == "vet"
