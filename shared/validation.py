"""Input validation utilities and domain errors."""
import re
import logging
from collections.abc import Mapping
from datetime import datetime
from pydantic import BaseModel, ValidationError as PydanticValidationError
from shared.enums import FieldType
from shared.schemas import FieldValidationRules, FormField, FormSection, SanitizedSection, sanitize_html

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$')
FIELD_TYPES = frozenset(t.value for t in FieldType)


class InspectionError(Exception):
    """Base class for domain errors surfaced to callers."""
    pass


class ValidationError(InspectionError):
    """Raised when input validation fails.

    When raised for a blocked submission, ``check`` carries the first
    incomplete field and its section.
    """

    def __init__(self, message, check=None, field_id=None, section_id=None):
        super().__init__(message)
        self.check = check
        self.field_id = field_id if field_id is not None else getattr(check, 'field_id', None)
        self.section_id = section_id if section_id is not None else getattr(check, 'section_id', None)


class PermissionDenied(InspectionError):
    """Raised when the caller's role lacks a capability."""
    pass


class NotFound(InspectionError):
    """Raised when a referenced template, inspection, assignment or user does not exist."""
    pass


class ConflictError(InspectionError):
    """Raised for prebuilt-template writes and forward-only transition violations."""
    pass


class StoreError(InspectionError):
    """Raised when a store collaborator fails; the original error is kept as __cause__."""
    pass


def is_complete(field, value):
    """Return True if ``value`` satisfies ``field``'s required flag.

    ``None`` stands for "no response recorded". Booleans treat an explicit
    ``False`` as answered; every other type also treats ``""`` as missing.
    """
    if not field.required:
        return True
    if field.type == FieldType.BOOLEAN:
        return value is not None
    return value is not None and value != ''


def _raw_section(section):
    if isinstance(section, BaseModel):
        return section.model_dump()
    return dict(section)


def _reject_reason(raw_field):
    """Describe why a raw field entry is malformed, or None if it parses."""
    if not isinstance(raw_field, Mapping):
        return f"not an object ({type(raw_field).__name__})"
    for key in ('id', 'label', 'type'):
        value = raw_field.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            return f"missing {key}"
    field_type = raw_field['type']
    if not isinstance(field_type, str) or field_type not in FIELD_TYPES:
        return f"unknown type {field_type!r}"
    return None


def _lenient_rules(raw_rules):
    if raw_rules is None:
        return None
    try:
        return FieldValidationRules.model_validate(raw_rules)
    except PydanticValidationError:
        return None


def _parse_field(raw_field):
    """Parse a well-formed field, coercing metadata that does not fit.

    Unusable ``validation`` rules are ignored and ``placeholder``/``options``
    are stringified, so only the identity keys decide whether a field survives.
    """
    try:
        return FormField.model_validate(raw_field)
    except PydanticValidationError:
        pass
    coerced = dict(raw_field)
    placeholder = coerced.get('placeholder')
    coerced['placeholder'] = '' if placeholder is None else str(placeholder)[:500]
    options = coerced.get('options')
    coerced['options'] = [str(o) for o in options if o is not None] if isinstance(options, list) else []
    coerced['validation'] = _lenient_rules(coerced.get('validation'))
    if isinstance(coerced.get('label'), str):
        coerced['label'] = coerced['label'][:500]
    field = FormField.model_validate(coerced)
    logger.debug(f"Coerced metadata of field {field.id!r}")
    return field


def check_field_metadata(raw_sections):
    """Reject authored fields whose metadata does not parse.

    Fields missing their id, label or type are left to the sanitizer.

    Raises:
        ValidationError: names the offending field and section
    """
    if not isinstance(raw_sections, list):
        return
    for position, raw in enumerate(raw_sections, start=1):
        if isinstance(raw, BaseModel):
            raw = raw.model_dump()
        if not isinstance(raw, Mapping) or not isinstance(raw.get('fields'), list):
            continue
        section_id = raw.get('id') if raw.get('id') not in (None, '') else position
        for raw_field in raw['fields']:
            if _reject_reason(raw_field) is not None:
                continue
            try:
                FormField.model_validate(raw_field)
            except PydanticValidationError as e:
                field_id = str(raw_field['id'])
                raise ValidationError(
                    f"Field '{field_id}' in section '{section_id}' is invalid: {format_pydantic_errors(e)}",
                    field_id=field_id, section_id=section_id
                ) from e


def sanitize_section(section, position=None):
    """Filter malformed fields out of one section.

    A field is kept only if it has a non-empty id and label and a type from
    the closed FieldType set; other metadata is coerced rather than judged.
    A ``fields`` value that is not a list becomes an empty list. Never raises
    for bad field data.

    Args:
        section: Section mapping (or FormSection)
        position: 1-based index used as the id when the section has none

    Returns:
        SanitizedSection: cleaned section and the number of dropped fields
    """
    raw = _raw_section(section)
    raw_fields = raw.get('fields')
    if not isinstance(raw_fields, list):
        if raw_fields is not None:
            logger.warning(f"Section {raw.get('id')!r} has non-list fields ({type(raw_fields).__name__}); treating as empty")
        raw_fields = []

    fields = []
    removed = 0
    for raw_field in raw_fields:
        reason = _reject_reason(raw_field)
        if reason is None:
            try:
                fields.append(_parse_field(raw_field))
                continue
            except PydanticValidationError as e:
                reason = format_pydantic_errors(e)
        removed += 1
        logger.debug(f"Dropping malformed field in section {raw.get('id')!r}: {reason}")

    section_id = raw.get('id')
    if section_id is None or section_id == '':
        section_id = position if position is not None else 0

    cleaned = FormSection(
        id=section_id,
        title=raw.get('title') or '',
        description=raw.get('description'),
        fields=fields,
        order=raw.get('order') if isinstance(raw.get('order'), int) else None,
    )
    return SanitizedSection(section=cleaned, removed_count=removed)


def sanitize_sections(raw_sections):
    """Sanitize a list of sections.

    Non-list input becomes an empty list, entries that are not objects are
    dropped, and sections are stably ordered by their explicit ``order`` when
    any section declares one.

    Returns:
        tuple: (list of FormSection, total number of dropped fields)
    """
    if not isinstance(raw_sections, list):
        if raw_sections is not None:
            logger.warning(f"Sections value is not a list ({type(raw_sections).__name__}); treating as empty")
        return [], 0

    sections = []
    removed = 0
    for position, raw in enumerate(raw_sections, start=1):
        if not isinstance(raw, (Mapping, BaseModel)):
            logger.warning(f"Dropping malformed section at position {position}: {type(raw).__name__}")
            continue
        result = sanitize_section(raw, position=position)
        sections.append(result.section)
        removed += result.removed_count

    if any(s.order is not None for s in sections):
        sections.sort(key=lambda s: (s.order is None, s.order or 0))
    return sections, removed


def check_template_sections(sections):
    """Authoring checks for sections about to be saved on a template.

    Raises:
        ValidationError: duplicate ids, or a select field without options
    """
    seen_sections = set()
    for section in sections:
        section_key = str(section.id)
        if section_key in seen_sections:
            raise ValidationError(f"Duplicate section id '{section.id}'", section_id=section.id)
        seen_sections.add(section_key)

        seen_fields = set()
        for field in section.fields:
            if field.id in seen_fields:
                raise ValidationError(
                    f"Duplicate field id '{field.id}' in section '{section.title}'",
                    field_id=field.id, section_id=section.id
                )
            seen_fields.add(field.id)
            if field.type == FieldType.SELECT and not [o for o in field.options if str(o).strip()]:
                raise ValidationError(
                    f"Select field '{field.label}' must define at least one option",
                    field_id=field.id, section_id=section.id
                )


def field_value_error(field, value):
    """Check a non-empty value against the field's type and validation rules.

    Empty values are left to ``is_complete``.

    Returns:
        str or None: error message, or None when the value is acceptable
    """
    if value is None or value == '':
        return None

    field_type = FieldType(field.type)
    rules = field.validation

    if field_type == FieldType.BOOLEAN:
        if not isinstance(value, bool):
            return f"{field.label} must be true or false"
        return None

    if field_type == FieldType.NUMBER:
        if isinstance(value, bool):
            return f"{field.label} must be a valid number"
        try:
            number = float(value)
        except (ValueError, TypeError):
            return f"{field.label} must be a valid number"
        if rules and rules.min is not None and number < rules.min:
            return f"{field.label} must be at least {rules.min:g}"
        if rules and rules.max is not None and number > rules.max:
            return f"{field.label} must be no more than {rules.max:g}"
        return None

    if field_type == FieldType.SELECT:
        if value not in field.options:
            return f"{field.label} must be one of: {', '.join(field.options)}"
        return None

    if field_type == FieldType.DATE:
        if not isinstance(value, str) or not DATE_PATTERN.match(value):
            return f"{field.label} must be a date (YYYY-MM-DD)"
        try:
            datetime.strptime(value, '%Y-%m-%d')
        except ValueError:
            return f"{field.label} must be a valid date"
        return None

    if field_type == FieldType.TIME:
        if not isinstance(value, str) or not TIME_PATTERN.match(value):
            return f"{field.label} must be a time (HH:MM)"
        return None

    if field_type in (FieldType.TEXT, FieldType.TEXTAREA, FieldType.IMAGE):
        if not isinstance(value, str):
            return f"{field.label} must be text"
        if rules and rules.pattern and field_type != FieldType.IMAGE:
            if not re.fullmatch(rules.pattern, value):
                return f"{field.label} has an invalid format"
        return None

    raise ValueError(f"Unhandled field type: {field.type}")


def sanitize_response_value(field, value):
    """Strip markup from free-text answers; other types are stored as given."""
    if isinstance(value, str) and field is not None and field.type in (FieldType.TEXT, FieldType.TEXTAREA):
        return sanitize_html(value)
    return value


def validate_choice(value, field_name, valid_choices):
    """Validate that value is in list of valid choices."""
    if value not in valid_choices:
        raise ValidationError(f"{field_name} must be one of: {', '.join(str(c) for c in valid_choices)}")
    return value


def format_pydantic_errors(error):
    """Flatten a pydantic ValidationError into ``"loc: msg; ..."``."""
    messages = []
    for err in error.errors():
        location = '.'.join(str(x) for x in err['loc'])
        messages.append(f"{location}: {err['msg']}" if location else err['msg'])
    return '; '.join(messages)


def parse_model(model_class, data):
    """Validate ``data`` into ``model_class``; pydantic errors become ValidationError."""
    if isinstance(data, model_class):
        return data
    try:
        return model_class.model_validate(data or {})
    except PydanticValidationError as e:
        raise ValidationError(format_pydantic_errors(e)) from e
