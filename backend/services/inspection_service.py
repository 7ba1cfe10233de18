"""Inspection lifecycle: creation, drafts, responses and submission."""
import logging
from shared import inspection_engine as engine
from shared.enums import InspectionStatus
from shared.models import now
from shared.permissions import default_policy
from shared.schemas import InspectionCreate, InspectionDraft
from shared.validation import (
    field_value_error, sanitize_response_value, parse_model,
    ValidationError, PermissionDenied, NotFound, ConflictError
)


class InspectionService:
    """Runs the inspection engine against the stores.

    Callers with ``can_view_all_inspections`` see and edit every
    inspection; everyone else only reaches inspections assigned to them.
    """

    def __init__(self, inspections, templates, assignments=None, assignment_service=None,
                 policy=None, clock=now):
        self.inspections = inspections
        self.templates = templates
        self.assignments = assignments
        self.assignment_service = assignment_service
        self.policy = policy or default_policy
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)

    # Access
    def _assigned_to(self, caller, inspection_id):
        if self.assignments is None:
            return False
        assignment = self.assignments.get_by_inspection(inspection_id)
        return assignment is not None and assignment.assigned_to == caller.id

    def _check_access(self, caller, inspection, capability):
        if self.policy.has_permission(caller, 'can_view_all_inspections'):
            return
        if self.policy.has_permission(caller, capability) and self._assigned_to(caller, inspection.id):
            return
        raise PermissionDenied(f"Inspection {inspection.id} is not accessible to this user")

    def _load(self, caller, inspection_id, capability='can_view_own_inspections'):
        inspection = self.inspections.get(inspection_id)
        if inspection is None:
            raise NotFound(f"Inspection {inspection_id} not found")
        self._check_access(caller, inspection, capability)
        return inspection

    def get(self, caller, inspection_id):
        return self._load(caller, inspection_id)

    def list(self, caller, status=None, query=None):
        """Inspections visible to the caller, most recently updated first."""
        if self.policy.has_permission(caller, 'can_view_all_inspections'):
            if query:
                items = self.inspections.search(query)
                return [i for i in items if not status or i.status == status]
            if status:
                return self.inspections.list_by_status(status)
            return self.inspections.list_all()

        self.policy.require(caller, 'can_view_own_inspections')
        if self.assignments is None:
            return []
        items = []
        seen = set()
        for assignment in self.assignments.list_by_assignee(caller.id):
            if assignment.inspection_id in seen:
                continue
            seen.add(assignment.inspection_id)
            inspection = self.inspections.get(assignment.inspection_id)
            if inspection is None:
                continue
            if status and inspection.status != status:
                continue
            if query and not _matches(inspection, query):
                continue
            items.append(inspection)
        return sorted(items, key=lambda i: i.updated_at, reverse=True)

    # Creation
    def create(self, caller, data):
        """Materialize an ad-hoc inspection, optionally from a template."""
        self.policy.require(caller, 'can_create_inspections')
        payload = parse_model(InspectionCreate, data)

        source = None
        if payload.template_id:
            source = self.templates.get(payload.template_id)
            if source is None:
                raise NotFound(f"Template {payload.template_id} not found")
        elif payload.sections is not None:
            source = payload.sections

        overrides = payload.model_dump(exclude={'template_id', 'sections'}, exclude_none=True)
        overrides.setdefault('inspector', caller.display_name)
        if not overrides.get('responses'):
            overrides.pop('responses', None)
        inspection = engine.materialize(source, overrides=overrides, now=self.clock())
        stored = self.inspections.upsert(inspection)
        self.logger.info(f"Inspection created: {stored.id} by {caller.id}")
        return stored.model_copy(update={'malformed_field_count': inspection.malformed_field_count})

    def save_draft(self, caller, data):
        """Create or update a pending draft.

        Raises:
            ConflictError: the stored inspection is no longer pending
            ValidationError: general-information fields are missing
        """
        payload = parse_model(InspectionDraft, data)
        changes = payload.model_dump(exclude_unset=True)

        existing = self.inspections.get(payload.id) if payload.id else None
        if existing is not None:
            self._check_access(caller, existing, 'can_edit_own_inspections')
            if existing.status != InspectionStatus.PENDING:
                raise ConflictError(f"Inspection {existing.id} is {existing.status} and is no longer a draft")
            merged = existing.model_dump()
            merged.update(changes)
        else:
            self.policy.require(caller, 'can_create_inspections')
            merged = changes
            merged.setdefault('inspector', caller.display_name)

        template = None
        if merged.get('template_id'):
            template = self.templates.get(merged['template_id'])
            if template is None and not merged.get('sections'):
                raise NotFound(f"Template {merged['template_id']} not found")

        draft = engine.prepare_draft(merged, template=template, now=self.clock())
        stored = self.inspections.upsert(draft)
        self.logger.info(f"Inspection draft saved: {stored.id} by {caller.id}")
        return stored

    def delete(self, caller, inspection_id):
        self.policy.require(caller, 'can_create_inspections')
        if not self.inspections.delete(inspection_id):
            raise NotFound(f"Inspection {inspection_id} not found")
        self.logger.info(f"Inspection deleted: {inspection_id} by {caller.id}")

    # Filling in
    def record_response(self, caller, inspection_id, field_id, value, expected_updated_at=None):
        """Store one answer.

        Values for known fields are checked against the field type and its
        validation rules first. Answers sent to a completed inspection are
        ignored and the stored inspection is returned unchanged.
        """
        inspection = self._load(caller, inspection_id, 'can_edit_own_inspections')
        if inspection.status == InspectionStatus.COMPLETED:
            self.logger.info(f"Ignoring response for completed inspection {inspection_id}")
            return inspection

        section, field = engine.find_field(inspection, field_id)
        if field is not None:
            error = field_value_error(field, value)
            if error:
                raise ValidationError(error, field_id=field.id, section_id=section.id)
            value = sanitize_response_value(field, value)

        updated = engine.record_response(inspection, field_id, value, now=self.clock())
        return self.inspections.upsert(updated, expected_updated_at=expected_updated_at)

    def start(self, caller, inspection_id):
        """Move a pending inspection to in-progress; no-op otherwise."""
        inspection = self._load(caller, inspection_id, 'can_edit_own_inspections')
        started = engine.begin_work(inspection, now=self.clock())
        if started is inspection:
            return inspection
        stored = self.inspections.upsert(started)
        self._sync_assignment(inspection_id, 'mark_started_for_inspection')
        return stored

    def validate(self, caller, inspection_id):
        return engine.validate_for_submit(self._load(caller, inspection_id))

    def progress(self, caller, inspection_id):
        return engine.section_progress(self._load(caller, inspection_id))

    def submit(self, caller, inspection_id):
        """Complete an inspection and then its assignment.

        The assignment update is best effort: a failure there is logged and
        the completed inspection is still returned.
        """
        inspection = self._load(caller, inspection_id, 'can_edit_own_inspections')
        completed = engine.complete(inspection, now=self.clock())
        stored = self.inspections.upsert(completed)
        self.logger.info(f"Inspection completed: {inspection_id} by {caller.id}")
        self._sync_assignment(inspection_id, 'mark_completed_for_inspection')
        return stored

    def _sync_assignment(self, inspection_id, method):
        if self.assignment_service is None:
            return
        try:
            getattr(self.assignment_service, method)(inspection_id)
        except Exception as e:
            self.logger.error(f"Could not update assignment for inspection {inspection_id}: {e}", exc_info=True)


def _matches(inspection, query):
    needle = query.strip().lower()
    return any(needle in (value or '').lower()
               for value in (inspection.title, inspection.location, inspection.inspector))
