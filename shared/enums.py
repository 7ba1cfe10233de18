import enum


class FieldType(str, enum.Enum):
    """Input types a template field may declare.

    The set is closed: a field whose type is not listed here is malformed
    and gets filtered out of its section.
    """
    BOOLEAN = "boolean"
    DATE = "date"
    IMAGE = "image"
    NUMBER = "number"
    SELECT = "select"
    TEXT = "text"
    TEXTAREA = "textarea"
    TIME = "time"


class TemplateStatus(str, enum.Enum):
    """Template status values.

    Used in InspectionTemplate to separate published templates from drafts.
    """
    ACTIVE = "active"
    ARCHIVED = "archived"
    DRAFT = "draft"


class TemplateCategory(str, enum.Enum):
    """Well-known template categories.

    Category is free text on the template; these are the values the
    prebuilt set and the draft defaults use.
    """
    CUSTOM = "custom"
    ENVIRONMENTAL = "environmental"
    INCIDENT = "incident"
    MAINTENANCE = "maintenance"
    SAFETY = "safety"


class InspectionStatus(str, enum.Enum):
    """Inspection lifecycle states, in forward order.

    COMPLETED is terminal.
    """
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class InspectionPriority(str, enum.Enum):
    """Priority levels for inspections."""
    CRITICAL = "critical"
    HIGH = "high"
    LOW = "low"
    MEDIUM = "medium"


class AssignmentPriority(str, enum.Enum):
    """Priority levels for assignments."""
    HIGH = "high"
    LOW = "low"
    MEDIUM = "medium"
    URGENT = "urgent"


class AssignmentStatus(str, enum.Enum):
    """Assignment states.

    OVERDUE is a display state computed at read time; it is never stored.
    """
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class UserRole(str, enum.Enum):
    """User roles for access control.

    Used in User model to define permissions.
    """
    ADMIN = "admin"
    MANAGER = "manager"
    INSPECTOR = "inspector"


class UserStatus(str, enum.Enum):
    """Account approval states.

    Only approved users may log in or receive assignments.
    """
    APPROVED = "approved"
    PENDING = "pending"
    REJECTED = "rejected"
