"""Users, roles and region assignments"""

from sqlalchemy import Column, String, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ambulance_billing.models.base import AppendOnlyModel, BaseModel, StatusMixin
from ambulance_billing.models.enums import UserRole


class User(BaseModel, StatusMixin):
    """
    Unified user model for all roles.
    Operators are linked to ambulances, reviewers may be linked to regions.
    """
    __tablename__ = "users"

    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        index=True,
    )

    region_assignments = relationship(
        "UserRegionAssignment",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    ambulance_assignments = relationship(
        "AmbulanceOperatorAssignment",
        back_populates="operator",
        cascade="all, delete-orphan",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_operator(self) -> bool:
        return self.role == UserRole.OPERATOR

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class UserRegionAssignment(AppendOnlyModel):
    """Many-to-many link between users and regions"""
    __tablename__ = "user_region_assignments"
    __table_args__ = (
        UniqueConstraint("user_id", "region_id", name="uq_user_region"),
    )

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    region_id = Column(String(36), ForeignKey("regions.id", ondelete="CASCADE"), nullable=False, index=True)

    user = relationship("User", back_populates="region_assignments")
    region = relationship("Region")
