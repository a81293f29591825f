"""
User CRUD operations.
"""
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.model.user import User
from app.model.vet_profile import VetProfile
from app.crud.base import CRUDBase


class CRUDUser(CRUDBase[User, dict, dict]):
    """User-specific CRUD operations."""

    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        """Get user by email."""
        return self.get_by_field(db, "email", email)

    def create_with_vet_profile(
        self, db: Session, *, obj_in: dict, vet_profile: Optional[dict] = None
    ) -> User:
        """Create the user row and, for vets, the vet sub-profile in one commit."""
        user = self.model(**obj_in)
        if user.role == "vet":
            user.vet_profile = VetProfile(**(vet_profile or {}))
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    def list_vets(self, db: Session, *, search: Optional[str] = None, limit: int = 25) -> List[User]:
        """Vets ordered by name; optional case-insensitive name prefix."""
        base = db.query(self.model).filter(self.model.role == "vet", self.model.is_banned.is_(False))
        if search and search.strip():
            prefix = search.strip().lower()
            base = base.filter(func.lower(self.model.full_name).startswith(prefix, autoescape=True))
        return base.order_by(self.model.full_name).limit(limit).all()


user_crud = CRUDUser(User)
