"""Base Models and Mixins for DRY principles"""

import uuid
from sqlalchemy import Column, DateTime, String, Boolean

from ambulance_billing.database import Base
from ambulance_billing.utils.time import get_utc_now


def new_id() -> str:
    """Opaque string primary key"""
    return str(uuid.uuid4())


class AppendOnlyModel(Base):
    """
    Base for rows that are written once and never updated.

    Provides:
    - string UUID primary key
    - created_at timestamp
    """
    __abstract__ = True

    id = Column(String(36), primary_key=True, default=new_id)
    created_at = Column(DateTime, default=get_utc_now, nullable=False, index=True)


class BaseModel(AppendOnlyModel):
    """
    Base model class for mutable entities.

    Adds an updated_at timestamp refreshed on every ORM update.
    """
    __abstract__ = True

    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now, nullable=False)


class StatusMixin:
    """
    Mixin for models with active/inactive status.

    Provides:
    - is_active boolean flag
    """
    is_active = Column(Boolean, default=True, nullable=False, index=True)
