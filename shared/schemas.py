"""Pydantic schemas for validation and serialization."""
from datetime import datetime
from typing import Optional, List, Dict, Any, Union
import re
import bleach
from pydantic import (
    BaseModel, Field, AliasChoices, field_validator, model_validator, computed_field, ConfigDict
)
from shared.enums import (
    FieldType, TemplateStatus, InspectionStatus, InspectionPriority,
    AssignmentPriority, AssignmentStatus, UserRole, UserStatus
)
from shared.models import now, to_app_time

# Email pattern: local part must start/end with alphanumeric, no consecutive dots/special chars
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9]+([._%+-][a-zA-Z0-9]+)*@([a-zA-Z0-9]+([.-][a-zA-Z0-9]+)*\.)+[a-zA-Z]{2,}$')


def sanitize_html(text: str) -> str:
    """Secure HTML sanitization using bleach library.

    Plain text (no tags or entities) is returned untouched to avoid the
    cost of parsing.
    """
    if not text:
        return text
    if '<' not in text and '>' not in text and '&' not in text:
        return text

    allowed_tags = ['p', 'br', 'strong', 'em', 'u', 'ul', 'ol', 'li', 'blockquote']
    allowed_attributes = {}
    return bleach.clean(text, tags=allowed_tags, attributes=allowed_attributes, strip=True)


def validate_string_length(value: str, field_name: str, min_length: int = 0, max_length: Optional[int] = None) -> str:
    """Validate string length constraints."""
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    value = value.strip()
    if len(value) < min_length:
        raise ValueError(f"{field_name} must be at least {min_length} characters")
    if max_length and len(value) > max_length:
        raise ValueError(f"{field_name} must be no more than {max_length} characters")
    return value


def _identifier(value):
    """Accept numeric identifiers from hand-written or legacy data as strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


# Template structure
class FieldValidationRules(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None

    @field_validator('pattern')
    @classmethod
    def validate_pattern(cls, v):
        if v:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"pattern is not a valid regular expression: {e}")
        return v or None

    @model_validator(mode='after')
    def validate_range(self):
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("min must not be greater than max")
        return self


class FormField(BaseModel):
    """One question of a template section."""
    id: str = Field(..., min_length=1, max_length=100)
    label: str = Field(..., min_length=1, max_length=500)
    type: FieldType
    required: bool = Field(default=False)
    placeholder: str = Field(default="", max_length=500)
    options: List[str] = Field(default_factory=list)
    validation: Optional[FieldValidationRules] = None

    @field_validator('id', 'label', mode='before')
    @classmethod
    def validate_identity(cls, v):
        return _identifier(v)

    @field_validator('placeholder', mode='before')
    @classmethod
    def validate_placeholder(cls, v):
        return v or ""

    @field_validator('options', mode='before')
    @classmethod
    def validate_options(cls, v):
        if v is None:
            return []
        return v

    model_config = ConfigDict(use_enum_values=True, extra='ignore')


class FormSection(BaseModel):
    """Ordered, titled group of fields."""
    id: Union[int, str]
    title: str = Field(default="", max_length=200)
    description: Optional[str] = None
    fields: List[FormField] = Field(default_factory=list)
    order: Optional[int] = None

    @field_validator('title', mode='before')
    @classmethod
    def validate_title(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v or ""

    model_config = ConfigDict(extra='ignore')


class SanitizedSection(BaseModel):
    """A section with malformed fields removed, plus how many were dropped."""
    section: FormSection
    removed_count: int = 0

    @property
    def fields(self):
        return self.section.fields


class InspectionTemplate(BaseModel):
    id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="")
    category: str = Field(default="", max_length=50)
    tags: List[str] = Field(default_factory=list)
    sections: List[FormSection] = Field(default_factory=list)
    status: TemplateStatus = Field(default=TemplateStatus.ACTIVE)
    is_active: bool = Field(default=True)
    is_prebuilt: bool = Field(default=False)
    created_by: str = Field(default="")
    created_at: datetime
    updated_at: datetime
    # Diagnostic only, never persisted
    malformed_field_count: int = Field(default=0, ge=0)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def validate_timestamps(cls, v):
        return to_app_time(v)

    model_config = ConfigDict(use_enum_values=True)


# Inspection instance
class InspectionResponse(BaseModel):
    field_id: str = Field(..., min_length=1, validation_alias=AliasChoices('field_id', 'fieldId'))
    value: Any = None
    timestamp: datetime = Field(default_factory=now)

    @field_validator('field_id', mode='before')
    @classmethod
    def validate_field_id(cls, v):
        return _identifier(v)

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v):
        return to_app_time(v)

    model_config = ConfigDict(extra='ignore')


class Inspection(BaseModel):
    id: str
    template_id: Optional[str] = None
    title: str = Field(default="", max_length=300)
    location: str = Field(default="", max_length=300)
    inspector: str = Field(default="", max_length=200)
    date: str = Field(default="")
    time: str = Field(default="")
    status: InspectionStatus = Field(default=InspectionStatus.PENDING)
    priority: InspectionPriority = Field(default=InspectionPriority.MEDIUM)
    sections: List[FormSection] = Field(default_factory=list)
    responses: List[InspectionResponse] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)
    score: Optional[float] = None
    issues: int = Field(default=0, ge=0)
    categories: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    # Diagnostic only, never persisted
    malformed_field_count: int = Field(default=0, ge=0)

    @field_validator('created_at', 'updated_at', 'completed_at')
    @classmethod
    def validate_timestamps(cls, v):
        return to_app_time(v)

    model_config = ConfigDict(use_enum_values=True)


class SubmitCheck(BaseModel):
    """Outcome of checking an inspection for submission."""
    ok: bool
    section_index: Optional[int] = None
    section_id: Optional[Union[int, str]] = None
    section_title: Optional[str] = None
    field_id: Optional[str] = None
    field_label: Optional[str] = None

    @property
    def message(self):
        if self.ok:
            return "Inspection is ready to submit"
        return f"{self.field_label} is required (section '{self.section_title}')"


class SectionProgress(BaseModel):
    section_id: Union[int, str]
    title: str
    required: int = 0
    completed: int = 0
    progress: float = 0.0


class InspectionProgress(BaseModel):
    inspection_id: str
    overall_progress: float = 0.0
    total_required: int = 0
    total_completed: int = 0
    sections: List[SectionProgress] = Field(default_factory=list)


# Assignment
class Assignment(BaseModel):
    id: str
    inspection_id: str
    assigned_to: str
    assigned_by: str
    assigned_at: datetime
    due_date: Optional[datetime] = None
    priority: AssignmentPriority = Field(default=AssignmentPriority.MEDIUM)
    status: AssignmentStatus = Field(default=AssignmentStatus.ASSIGNED)
    notes: Optional[str] = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        if v == AssignmentStatus.OVERDUE:
            raise ValueError("overdue is a derived state and cannot be stored")
        return v

    @field_validator('assigned_at', 'due_date')
    @classmethod
    def validate_timestamps(cls, v):
        return to_app_time(v)

    def is_overdue(self, at: Optional[datetime] = None) -> bool:
        """Derived overdue flag: past due and not completed."""
        if self.due_date is None or self.status == AssignmentStatus.COMPLETED:
            return False
        return self.due_date < (to_app_time(at) if at else now())

    @computed_field
    @property
    def overdue(self) -> bool:
        return self.is_overdue()

    @computed_field
    @property
    def display_status(self) -> str:
        if self.is_overdue():
            return AssignmentStatus.OVERDUE.value
        return AssignmentStatus(self.status).value

    model_config = ConfigDict(use_enum_values=True)


# Users and callers
class UserProfile(BaseModel):
    id: str
    email: str
    full_name: str = ""
    role: UserRole = Field(default=UserRole.INSPECTOR)
    status: UserStatus = Field(default=UserStatus.PENDING)
    created_at: Optional[datetime] = None

    @property
    def display_name(self):
        return self.full_name or self.email or "Unknown Inspector"

    model_config = ConfigDict(use_enum_values=True, from_attributes=True)


class Caller(BaseModel):
    """Identity and role of whoever invokes a service operation."""
    id: str
    role: Optional[UserRole] = None
    display_name: str = ""
    is_system: bool = False

    @classmethod
    def system(cls):
        return cls(id="system", role=UserRole.ADMIN, display_name="System", is_system=True)

    @classmethod
    def from_user(cls, user: UserProfile):
        return cls(id=user.id, role=user.role, display_name=user.display_name)

    model_config = ConfigDict(use_enum_values=True, frozen=True)


# Request schemas
class TemplateCreate(BaseModel):
    id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    category: str = Field(default="custom", max_length=50)
    tags: List[str] = Field(default_factory=list)
    # Raw section data; sanitized by the template service before it is stored
    sections: Any = Field(default_factory=list)
    status: Optional[TemplateStatus] = None
    is_active: Optional[bool] = None
    is_prebuilt: Optional[bool] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        return sanitize_html(validate_string_length(v, 'title', 1, 200))

    @field_validator('description', 'category')
    @classmethod
    def sanitize_text_fields(cls, v):
        if v:
            return sanitize_html(v.strip())
        return v or ""

    @field_validator('tags', mode='before')
    @classmethod
    def validate_tags(cls, v):
        if v is None:
            return []
        return [tag.strip() for tag in v if isinstance(tag, str) and tag.strip()]

    model_config = ConfigDict(use_enum_values=True)


class TemplateUpdate(TemplateCreate):
    """Full replacement document for an existing template."""
    pass


class TemplateDraft(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)
    tags: Optional[List[str]] = None
    sections: Any = None

    @field_validator('title', 'description', 'category')
    @classmethod
    def sanitize_text_fields(cls, v):
        if v is not None:
            return sanitize_html(v.strip())
        return v


class InspectionCreate(BaseModel):
    """Ad-hoc inspection, optionally built from a template."""
    template_id: Optional[str] = None
    sections: Any = None
    title: Optional[str] = Field(None, max_length=300)
    location: Optional[str] = Field(None, max_length=300)
    inspector: Optional[str] = Field(None, max_length=200)
    date: Optional[str] = None
    time: Optional[str] = None
    priority: Optional[InspectionPriority] = None
    description: Optional[str] = None
    responses: List[InspectionResponse] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)

    @field_validator('title', 'location', 'inspector', 'description')
    @classmethod
    def sanitize_text_fields(cls, v):
        if v is not None:
            return sanitize_html(v.strip())
        return v

    model_config = ConfigDict(use_enum_values=True)


class InspectionDraft(InspectionCreate):
    id: Optional[str] = None
    status: Optional[InspectionStatus] = None
    categories: Optional[List[str]] = None
    created_at: Optional[datetime] = None


class ResponseRecord(BaseModel):
    value: Any = None
    # Optional optimistic concurrency token: the updated_at the client last saw
    updated_at: Optional[datetime] = None


class AssignmentCreate(BaseModel):
    template_id: Optional[str] = None
    inspection_id: Optional[str] = None
    assigned_to: str = Field(..., min_length=1)
    due_date: Optional[datetime] = None
    priority: AssignmentPriority = Field(default=AssignmentPriority.MEDIUM)
    notes: Optional[str] = Field(None, max_length=2000)
    title: Optional[str] = Field(None, max_length=300)
    location: Optional[str] = Field(None, max_length=300)

    @model_validator(mode='after')
    def validate_source(self):
        if bool(self.template_id) == bool(self.inspection_id):
            raise ValueError("exactly one of template_id or inspection_id is required")
        return self

    @field_validator('notes', 'title', 'location')
    @classmethod
    def sanitize_text_fields(cls, v):
        if v is not None:
            return sanitize_html(v.strip())
        return v

    @field_validator('due_date')
    @classmethod
    def validate_due_date(cls, v):
        return to_app_time(v)

    @property
    def source_id(self):
        return self.template_id or self.inspection_id

    model_config = ConfigDict(use_enum_values=True)


class UserRegister(BaseModel):
    email: str = Field(..., max_length=120)
    password: str = Field(..., min_length=8, max_length=200)
    full_name: str = Field(default="", max_length=200)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator('full_name')
    @classmethod
    def sanitize_name(cls, v):
        return sanitize_html(v.strip()) if v else ""


class UserLogin(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=200)
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None

    model_config = ConfigDict(use_enum_values=True)


# Dashboard
class DashboardStats(BaseModel):
    total_inspections: int = 0
    pending_inspections: int = 0
    completed_today: int = 0
    critical_issues: int = 0
    safety_score: int = 0
    last_inspection_at: Optional[datetime] = None
    total_templates: int = 0
    active_inspectors: int = 0
    completed_this_month: int = 0
    avg_completion_hours: int = 0
    overdue_assignments: int = 0


class UpcomingTask(BaseModel):
    assignment_id: str
    inspection_id: str
    title: str
    due_date: datetime
    assigned_to: str
    assignee_name: str = ""
    priority: str
    status: str
    overdue: bool = False

