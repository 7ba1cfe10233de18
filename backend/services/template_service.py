"""Template authoring, drafts and prebuilt seeding."""
import json
import logging
import os
from shared.enums import TemplateStatus
from shared.models import now
from shared.permissions import default_policy
from shared.schemas import InspectionTemplate, TemplateCreate, TemplateUpdate, TemplateDraft, Caller
from shared.utils import generate_id
from shared.validation import (
    sanitize_sections, check_field_metadata, check_template_sections, parse_model, NotFound, ConflictError
)

logger = logging.getLogger(__name__)


def load_default_templates(directory):
    """Read prebuilt template definitions from ``*.json`` files in ``directory``.

    Each file holds one template object or a list of them. Files are read in
    name order.
    """
    if not directory or not os.path.isdir(directory):
        logger.warning(f"Prebuilt template directory not found: {directory}")
        return []

    defaults = []
    for name in sorted(os.listdir(directory)):
        if not name.endswith('.json'):
            continue
        path = os.path.join(directory, name)
        logger.debug(f"Loading template from: {path}")
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        defaults.extend(data if isinstance(data, list) else [data])
    logger.info(f"Loaded {len(defaults)} prebuilt template definition(s) from {directory}")
    return defaults


class TemplateService:
    """Role-gated operations over the template store."""

    def __init__(self, templates, policy=None, clock=now):
        self.templates = templates
        self.policy = policy or default_policy
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)

    def _prepare_sections(self, raw_sections):
        check_field_metadata(raw_sections)
        sections, removed = sanitize_sections(raw_sections)
        if removed:
            self.logger.warning(f"Removed {removed} malformed field(s) from template sections")
        check_template_sections(sections)
        return sections, removed

    def _require_writable(self, caller, template):
        if template.is_prebuilt and not caller.is_system:
            raise ConflictError(f"Template '{template.title}' is prebuilt and cannot be modified")

    def get(self, template_id):
        return self.templates.get(template_id)

    def list(self, status=None, category=None, search=None):
        return self.templates.list(status=status, category=category, search=search)

    def create(self, caller, data):
        """Create a template.

        Raises:
            PermissionDenied: caller cannot create templates
            ValidationError: bad payload or sections that fail authoring checks
            ConflictError: explicit id already taken, or a non-system caller
                asked for a prebuilt template
        """
        self.policy.require(caller, 'can_create_templates')
        payload = parse_model(TemplateCreate, data)
        sections, removed = self._prepare_sections(payload.sections)

        if payload.is_prebuilt and not caller.is_system:
            raise ConflictError("Only the system may create prebuilt templates")
        if payload.id and self.templates.get(payload.id) is not None:
            raise ConflictError(f"Template {payload.id} already exists")

        at = self.clock()
        status = payload.status or TemplateStatus.ACTIVE
        template = InspectionTemplate(
            id=payload.id or generate_id(),
            title=payload.title,
            description=payload.description,
            category=payload.category or 'custom',
            tags=payload.tags,
            sections=sections,
            status=status,
            is_active=payload.is_active if payload.is_active is not None else status == TemplateStatus.ACTIVE,
            is_prebuilt=bool(payload.is_prebuilt),
            created_by=payload.created_by or caller.id,
            created_at=payload.created_at or at,
            updated_at=at,
        )
        stored = self.templates.upsert(template)
        self.logger.info(f"Template created: {stored.id} ({stored.title}) by {caller.id}")
        return stored.model_copy(update={'malformed_field_count': removed})

    def update(self, caller, template_id, data):
        """Fully replace a template's content.

        ``created_at`` and ``created_by`` carry over when omitted; only the
        system caller may change ``is_prebuilt``.
        """
        self.policy.require(caller, 'can_edit_templates')
        existing = self.templates.get(template_id)
        if existing is None:
            raise NotFound(f"Template {template_id} not found")
        self._require_writable(caller, existing)

        payload = parse_model(TemplateUpdate, data)
        sections, removed = self._prepare_sections(payload.sections)

        is_prebuilt = existing.is_prebuilt
        if payload.is_prebuilt is not None and payload.is_prebuilt != existing.is_prebuilt:
            if not caller.is_system:
                raise ConflictError("Only the system may change whether a template is prebuilt")
            is_prebuilt = payload.is_prebuilt

        status = payload.status or existing.status
        template = InspectionTemplate(
            id=existing.id,
            title=payload.title,
            description=payload.description,
            category=payload.category or existing.category,
            tags=payload.tags,
            sections=sections,
            status=status,
            is_active=payload.is_active if payload.is_active is not None else status == TemplateStatus.ACTIVE,
            is_prebuilt=is_prebuilt,
            created_by=payload.created_by or existing.created_by,
            created_at=payload.created_at or existing.created_at,
            updated_at=self.clock(),
        )
        stored = self.templates.upsert(template)
        self.logger.info(f"Template updated: {stored.id} by {caller.id}")
        return stored.model_copy(update={'malformed_field_count': removed})

    def delete(self, caller, template_id):
        self.policy.require(caller, 'can_delete_templates')
        existing = self.templates.get(template_id)
        if existing is None:
            raise NotFound(f"Template {template_id} not found")
        self._require_writable(caller, existing)
        self.templates.delete(template_id)
        self.logger.info(f"Template deleted: {template_id} by {caller.id}")

    def save_draft(self, caller, data):
        """Upsert a work-in-progress template.

        Drafts are only sanitized; authoring checks run when the template is
        created or updated for real.
        """
        self.policy.require(caller, 'can_create_templates')
        payload = parse_model(TemplateDraft, data)

        existing = self.templates.get(payload.id) if payload.id else None
        if existing is not None:
            self._require_writable(caller, existing)

        sections, removed = sanitize_sections(payload.sections or [])
        at = self.clock()
        draft = InspectionTemplate(
            id=existing.id if existing else (payload.id or generate_id()),
            title=payload.title or 'Untitled Draft',
            description=payload.description or '',
            category=payload.category or 'custom',
            tags=payload.tags or ['draft'],
            sections=sections,
            status=TemplateStatus.DRAFT,
            is_active=False,
            is_prebuilt=False,
            created_by=existing.created_by if existing else caller.id,
            created_at=existing.created_at if existing else at,
            updated_at=at,
        )
        stored = self.templates.upsert(draft)
        self.logger.info(f"Template draft saved: {stored.id} by {caller.id}")
        return stored.model_copy(update={'malformed_field_count': removed})

    def seed_prebuilt(self, defaults):
        """Insert each default whose title is not already a prebuilt template.

        Returns:
            int: number of templates inserted
        """
        system = Caller.system()
        inserted = 0
        for data in defaults:
            title = data.get('title') if isinstance(data, dict) else getattr(data, 'title', None)
            if title and self.templates.find_prebuilt_by_title(title) is not None:
                self.logger.debug(f"Prebuilt template already present: {title}")
                continue

            payload = dict(data) if isinstance(data, dict) else data.model_dump()
            if payload.get('id') and self.templates.get(payload['id']) is not None:
                self.logger.warning(f"Skipping prebuilt template '{title}': id {payload['id']} is already used")
                continue
            payload['is_prebuilt'] = True
            payload.setdefault('created_by', system.id)
            self.create(system, payload)
            inserted += 1

        if inserted:
            self.logger.info(f"Seeded {inserted} prebuilt template(s)")
        return inserted
