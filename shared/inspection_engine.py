"""Inspection instance engine.

Turns templates (or ad-hoc sections) into fillable inspections and moves
them through ``pending -> in-progress -> completed``. Every function takes a
snapshot and returns a new one; nothing here touches a store, so callers
decide when and where results are persisted.
"""
import logging
from pydantic import BaseModel
from shared.enums import FieldType, InspectionStatus, InspectionPriority
from shared.models import now as current_time
from shared.schemas import (
    Inspection, InspectionResponse, InspectionTemplate, FormField, FormSection,
    SubmitCheck, SectionProgress, InspectionProgress
)
from shared.utils import generate_id, today_string, current_time_string, build_response_lookup, percentage
from shared.validation import is_complete, sanitize_sections, ValidationError, ConflictError

logger = logging.getLogger(__name__)

# Used when an ad-hoc inspection is started without any sections
GENERAL_INFORMATION_SECTION = FormSection(
    id=1,
    title='General Information',
    description='Basic inspection details',
    fields=[
        FormField(id='title', label='Inspection Title', type=FieldType.TEXT, required=True,
                  placeholder='Enter inspection title'),
        FormField(id='location', label='Location/Area', type=FieldType.TEXT, required=True,
                  placeholder='Enter location or area'),
        FormField(id='inspector', label='Inspector Name', type=FieldType.TEXT, required=True,
                  placeholder='Enter inspector name'),
        FormField(id='date', label='Inspection Date', type=FieldType.DATE, required=True),
        FormField(id='time', label='Inspection Time', type=FieldType.TIME, required=True),
    ],
)

# Inspection attributes that also answer general-information fields of the same id
ATTRIBUTE_FIELDS = ('title', 'location', 'inspector', 'date', 'time', 'description')

MATERIALIZE_OVERRIDES = frozenset({
    'id', 'template_id', 'title', 'location', 'inspector', 'date', 'time',
    'priority', 'description', 'responses', 'photos', 'categories',
})


def default_response_value(field_type, at=None):
    """Initial answer seeded for a field when an inspection is materialized.

    Returns None for booleans: an unanswered boolean has no response entry,
    so nothing is seeded for it.
    """
    field_type = FieldType(field_type)
    if field_type == FieldType.DATE:
        return today_string(at)
    elif field_type == FieldType.TIME:
        return current_time_string(at)
    elif field_type == FieldType.NUMBER:
        return 0
    elif field_type == FieldType.BOOLEAN:
        return None
    elif field_type in (FieldType.TEXT, FieldType.TEXTAREA, FieldType.SELECT, FieldType.IMAGE):
        return ''
    raise ValueError(f"Unhandled field type: {field_type}")


def _raw_sections(sections):
    if not isinstance(sections, list):
        return sections
    return [s.model_dump() if isinstance(s, BaseModel) else s for s in sections]


def response_lookup(inspection):
    """Map of field id -> recorded value for an inspection."""
    return build_response_lookup(inspection.responses)


def find_field(inspection, field_id):
    """Return (section, field) for ``field_id``, or (None, None)."""
    field_id = str(field_id)
    for section in inspection.sections:
        for field in section.fields:
            if field.id == field_id:
                return section, field
    return None, None


def materialize(source, overrides=None, now=None):
    """Create a pending inspection from a template or a list of sections.

    Sections are deep-copied so later template edits never reach the new
    inspection. One default response is seeded per field that has no
    existing response (see ``default_response_value``).

    Args:
        source: InspectionTemplate, list of sections, or None for the
            built-in general-information section
        overrides (dict): id, title, location, inspector, date, time,
            priority, description, responses, photos, categories
        now: timestamp to stamp, defaults to the current time

    Returns:
        Inspection: new snapshot in ``pending`` state
    """
    at = now or current_time()
    overrides = dict(overrides or {})
    unknown = set(overrides) - MATERIALIZE_OVERRIDES
    if unknown:
        raise ValueError(f"Unknown inspection attributes: {', '.join(sorted(unknown))}")

    template = source if isinstance(source, InspectionTemplate) else None
    if template is not None:
        sections, removed = sanitize_sections(_raw_sections(template.sections))
    elif source is None:
        sections, removed = [GENERAL_INFORMATION_SECTION.model_copy(deep=True)], 0
    else:
        sections, removed = sanitize_sections(_raw_sections(source))
    if removed:
        logger.warning(f"Dropped {removed} malformed field(s) while materializing inspection")

    responses = [
        r if isinstance(r, InspectionResponse) else InspectionResponse.model_validate(r)
        for r in overrides.get('responses') or []
    ]
    responses = [r.model_copy(deep=True) for r in responses]
    answered = build_response_lookup(responses)
    for section in sections:
        for field in section.fields:
            if field.id in answered:
                continue
            default = default_response_value(field.type, at)
            if default is not None:
                responses.append(InspectionResponse(field_id=field.id, value=default, timestamp=at))
                answered[field.id] = default

    if template is not None:
        template_id = template.id
        categories = [template.category] if template.category else []
        default_title = template.title
    else:
        template_id = overrides.get('template_id')
        categories = list(overrides.get('categories') or [])
        default_title = 'New Inspection'

    inspection = Inspection(
        id=overrides.get('id') or generate_id(),
        template_id=template_id,
        title=overrides.get('title') or default_title,
        location=overrides.get('location') or '',
        inspector=overrides.get('inspector') or '',
        date=overrides.get('date') or today_string(at),
        time=overrides.get('time') or current_time_string(at),
        status=InspectionStatus.PENDING,
        priority=overrides.get('priority') or InspectionPriority.MEDIUM,
        sections=sections,
        responses=responses,
        photos=list(overrides.get('photos') or []),
        categories=categories,
        description=overrides.get('description'),
        created_at=at,
        updated_at=at,
        malformed_field_count=removed,
    )
    logger.debug(f"Materialized inspection {inspection.id} with {len(sections)} section(s)")
    return inspection


def record_response(inspection, field_id, value, now=None):
    """Upsert the answer for ``field_id``.

    The new entry replaces any earlier one for the same field, in place.
    Completed inspections are returned unchanged.
    """
    if inspection.status == InspectionStatus.COMPLETED:
        logger.info(f"Ignoring response for field '{field_id}': inspection {inspection.id} is completed")
        return inspection

    at = now or current_time()
    field_id = str(field_id)
    updated = inspection.model_copy(deep=True)
    entry = InspectionResponse(field_id=field_id, value=value, timestamp=at)
    for index, existing in enumerate(updated.responses):
        if existing.field_id == field_id:
            updated.responses[index] = entry
            break
    else:
        updated.responses.append(entry)
    updated.updated_at = at
    return updated


def begin_work(inspection, now=None):
    """Move a pending inspection to in-progress; no-op in any other state."""
    if inspection.status != InspectionStatus.PENDING:
        return inspection
    updated = inspection.model_copy(deep=True)
    updated.status = InspectionStatus.IN_PROGRESS.value
    updated.updated_at = now or current_time()
    return updated


def validate_for_submit(inspection):
    """Find the first incomplete required field, in section then field order.

    Returns:
        SubmitCheck: ``ok=True``, or the offending field and its section
    """
    lookup = response_lookup(inspection)
    for index, section in enumerate(inspection.sections):
        for field in section.fields:
            if not is_complete(field, lookup.get(field.id)):
                return SubmitCheck(
                    ok=False,
                    section_index=index,
                    section_id=section.id,
                    section_title=section.title,
                    field_id=field.id,
                    field_label=field.label,
                )
    return SubmitCheck(ok=True)


def complete(inspection, now=None):
    """Mark a submittable inspection completed.

    Raises:
        ConflictError: the inspection is already completed
        ValidationError: a required field is missing; ``check`` names it
    """
    if inspection.status == InspectionStatus.COMPLETED:
        raise ConflictError(f"Inspection {inspection.id} is already completed")

    check = validate_for_submit(inspection)
    if not check.ok:
        raise ValidationError(check.message, check=check)

    at = now or current_time()
    updated = inspection.model_copy(deep=True)
    updated.status = InspectionStatus.COMPLETED.value
    updated.completed_at = at
    updated.updated_at = at
    return updated


def _general_section_check(inspection):
    section = inspection.sections[0] if inspection.sections else GENERAL_INFORMATION_SECTION
    lookup = response_lookup(inspection)
    for field in section.fields:
        value = lookup.get(field.id)
        if (value is None or value == '') and field.id in ATTRIBUTE_FIELDS:
            value = getattr(inspection, field.id)
        if not is_complete(field, value):
            return SubmitCheck(
                ok=False,
                section_index=0,
                section_id=section.id,
                section_title=section.title,
                field_id=field.id,
                field_label=field.label,
            )
    return SubmitCheck(ok=True)


def prepare_draft(partial, template=None, now=None):
    """Build a pending inspection that may be stored as a draft.

    Only the first ("general information") section has to be complete.
    Its answers may come from responses or from the inspection attribute of
    the same name (title, location, inspector, date, time).

    Raises:
        ConflictError: the partial data asks for a status other than pending
        ValidationError: a required general-information field is missing
    """
    at = now or current_time()
    data = dict(partial)
    status = data.get('status')
    if status and status != InspectionStatus.PENDING:
        raise ConflictError(f"Drafts can only be saved as pending, not '{status}'")

    if data.get('sections'):
        sections, removed = sanitize_sections(_raw_sections(data['sections']))
    elif template is not None:
        sections, removed = sanitize_sections(_raw_sections(template.sections))
    else:
        sections, removed = [GENERAL_INFORMATION_SECTION.model_copy(deep=True)], 0

    date = data.get('date') or today_string(at)
    location = (data.get('location') or '').strip()
    template_name = template.title if template is not None else 'Inspection'
    if location:
        default_title = f"{template_name} - {location} ({date})"
    else:
        default_title = f"{template_name} - Draft ({date})"

    categories = data.get('categories')
    if categories is None:
        categories = [template.category] if template is not None and template.category else []

    draft = Inspection(
        id=data.get('id') or generate_id(),
        template_id=data.get('template_id') or (template.id if template is not None else None),
        title=data.get('title') or default_title,
        location=location,
        inspector=data.get('inspector') or '',
        date=date,
        time=data.get('time') or current_time_string(at),
        status=InspectionStatus.PENDING,
        priority=data.get('priority') or InspectionPriority.MEDIUM,
        sections=sections,
        responses=data.get('responses') or [],
        photos=data.get('photos') or [],
        score=data.get('score'),
        issues=data.get('issues') or 0,
        categories=categories,
        description=data.get('description'),
        created_at=data.get('created_at') or at,
        updated_at=at,
        malformed_field_count=removed,
    )

    check = _general_section_check(draft)
    if not check.ok:
        raise ValidationError(f"Draft is missing {check.field_label}", check=check)
    return draft


def section_progress(inspection):
    """Required/completed counts per section and overall.

    A section without required fields counts as fully complete.
    """
    lookup = response_lookup(inspection)
    sections = []
    total_required = 0
    total_completed = 0
    for section in inspection.sections:
        required = [f for f in section.fields if f.required]
        done = sum(1 for f in required if is_complete(f, lookup.get(f.id)))
        sections.append(SectionProgress(
            section_id=section.id,
            title=section.title,
            required=len(required),
            completed=done,
            progress=percentage(done, len(required)) if required else 100.0,
        ))
        total_required += len(required)
        total_completed += done

    return InspectionProgress(
        inspection_id=inspection.id,
        overall_progress=percentage(total_completed, total_required) if total_required else 100.0,
        total_required=total_required,
        total_completed=total_completed,
        sections=sections,
    )
