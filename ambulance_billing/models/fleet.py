"""Regions, ambulances and operator assignments"""

from sqlalchemy import Column, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ambulance_billing.models.base import AppendOnlyModel, BaseModel


class Region(BaseModel):
    """Reference data: the area an ambulance and its bills belong to."""
    __tablename__ = "regions"

    name = Column(String(255), nullable=False)
    city = Column(String(255), nullable=False)
    state = Column(String(255), nullable=False)

    ambulances = relationship("Ambulance", back_populates="region")

    def __repr__(self) -> str:
        return f"<Region {self.name} ({self.city}, {self.state})>"


class Ambulance(BaseModel):
    """
    A vehicle bills are raised against.
    The region is fixed at creation; the operator set may be empty.
    """
    __tablename__ = "ambulances"

    name = Column(String(255), nullable=False, index=True)
    code = Column(String(64), unique=True, nullable=False, index=True)
    region_id = Column(String(36), ForeignKey("regions.id", ondelete="RESTRICT"), nullable=False, index=True)

    region = relationship("Region", back_populates="ambulances")
    operator_assignments = relationship(
        "AmbulanceOperatorAssignment",
        back_populates="ambulance",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Ambulance {self.code}>"


class AmbulanceOperatorAssignment(AppendOnlyModel):
    """Many-to-many link between ambulances and operator users"""
    __tablename__ = "ambulance_operator_assignments"
    __table_args__ = (
        UniqueConstraint("ambulance_id", "operator_id", name="uq_ambulance_operator"),
    )

    ambulance_id = Column(String(36), ForeignKey("ambulances.id", ondelete="CASCADE"), nullable=False, index=True)
    operator_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    ambulance = relationship("Ambulance", back_populates="operator_assignments")
    operator = relationship("User", back_populates="ambulance_assignments")
