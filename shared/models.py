import os
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Float, Boolean, Text, DateTime, ForeignKey, Index, text, Enum, JSON
from sqlalchemy.orm import declarative_base
from shared.enums import (
    TemplateStatus, InspectionStatus, InspectionPriority, AssignmentPriority,
    AssignmentStatus, UserRole, UserStatus
)

Base = declarative_base()


def _enum(enum_class):
    """Store enum values (not member names) so server defaults and raw SQL agree."""
    return Enum(enum_class, values_callable=lambda members: [m.value for m in members])

# Global timezone configuration
# Uses zoneinfo for proper DST handling; override with the APP_TIMEZONE environment variable
from zoneinfo import ZoneInfo
APP_TIMEZONE = ZoneInfo(os.getenv('APP_TIMEZONE', 'UTC'))

# EPOCH: Timezone-aware datetime representing Unix epoch in the application timezone
# When stored in SQLite, timezone info is stripped (SQLite limitation)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc).astimezone(APP_TIMEZONE)


def now():
    """Return current datetime in application timezone (timezone-aware).

    Note: When stored in SQLite, timezone info is stripped (SQLite limitation).
    All stored datetimes should be treated as application time, even though they're stored naive.
    """
    return datetime.now(APP_TIMEZONE)


def to_app_time(value):
    """Normalize a datetime to an aware datetime in the application timezone.

    Naive values (as read back from SQLite) are assumed to already be in
    application time.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=APP_TIMEZONE)
    return value.astimezone(APP_TIMEZONE)


class TimestampMixin:
    """Mixin providing created/updated stamps to reduce DRY violations."""

    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)


class User(Base, TimestampMixin):
    __tablename__ = 'users'
    id = Column(String(36), primary_key=True, nullable=False)
    email = Column(String(120), unique=True, nullable=False, server_default="")
    full_name = Column(String(200), nullable=False, server_default="")
    password_hash = Column(String(256), nullable=False, server_default="")
    role = Column(_enum(UserRole), default=UserRole.INSPECTOR, nullable=False, server_default=text("'inspector'"))
    status = Column(_enum(UserStatus), default=UserStatus.PENDING, nullable=False, server_default=text("'pending'"))

Index('idx_user_role_status', User.role, User.status)


class AppConfig(Base):
    __tablename__ = 'app_config'
    id = Column(Integer, primary_key=True, nullable=False)
    key = Column(String(100), unique=True, nullable=False, server_default="")
    value = Column(Text, server_default="")
    description = Column(String(300), server_default="")
    category = Column(String(50), server_default="")
    updated_at = Column(DateTime, default=now, onupdate=now)


class InspectionTemplate(Base, TimestampMixin):
    __tablename__ = 'templates'
    id = Column(String(36), primary_key=True, nullable=False)
    title = Column(String(200), nullable=False, server_default="Untitled Template")
    description = Column(Text, server_default="")
    category = Column(String(50), server_default="")
    tags = Column(JSON, default=list)
    sections = Column(JSON, default=list)
    status = Column(_enum(TemplateStatus), default=TemplateStatus.ACTIVE, nullable=False, server_default=text("'active'"))
    is_active = Column(Boolean, default=True, server_default='1')
    is_prebuilt = Column(Boolean, default=False, server_default='0', index=True)
    created_by = Column(String(36), server_default="")

Index('idx_template_status_category', InspectionTemplate.status, InspectionTemplate.category)
Index('idx_template_prebuilt_title', InspectionTemplate.is_prebuilt, InspectionTemplate.title)


class Inspection(Base, TimestampMixin):
    __tablename__ = 'inspections'
    id = Column(String(36), primary_key=True, nullable=False)
    # No foreign key: inspections keep their section snapshot after the template is deleted
    template_id = Column(String(36), nullable=True, index=True)
    title = Column(String(300), nullable=False, server_default="")
    location = Column(String(300), server_default="")
    inspector = Column(String(200), server_default="")
    date = Column(String(10), server_default="")
    time = Column(String(8), server_default="")
    status = Column(_enum(InspectionStatus),
                    default=InspectionStatus.PENDING, nullable=False, server_default=text("'pending'"))
    priority = Column(_enum(InspectionPriority), default=InspectionPriority.MEDIUM, nullable=False, server_default=text("'medium'"))
    sections = Column(JSON, default=list)
    responses = Column(JSON, default=list)
    photos = Column(JSON, default=list)
    score = Column(Float, nullable=True)
    issues = Column(Integer, default=0, server_default="0")
    categories = Column(JSON, default=list)
    description = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)

Index('idx_inspection_status', Inspection.status)
Index('idx_inspection_updated_at', Inspection.updated_at)


class Assignment(Base):
    __tablename__ = 'inspection_assignments'
    id = Column(String(36), primary_key=True, nullable=False)
    inspection_id = Column(String(36), ForeignKey('inspections.id', ondelete='CASCADE'), nullable=False, index=True)
    assigned_to = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    assigned_by = Column(String(36), nullable=False, index=True, server_default="")
    assigned_at = Column(DateTime, default=now, nullable=False)
    due_date = Column(DateTime, nullable=True)
    priority = Column(_enum(AssignmentPriority), default=AssignmentPriority.MEDIUM, nullable=False, server_default=text("'medium'"))
    status = Column(_enum(AssignmentStatus), default=AssignmentStatus.ASSIGNED, nullable=False, server_default=text("'assigned'"))
    notes = Column(Text, nullable=True)

Index('idx_assignment_due_date', Assignment.due_date)
Index('idx_assignment_status', Assignment.status)
