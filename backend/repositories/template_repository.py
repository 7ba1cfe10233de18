"""Template store backed by the ``templates`` table."""
from sqlalchemy import or_, func
from shared.models import InspectionTemplate as TemplateRow
from shared.schemas import InspectionTemplate
from shared.validation import sanitize_sections
from .base import BaseRepository, to_storage_time, json_list


class TemplateRepository(BaseRepository):
    """CRUD for inspection templates. Returns detached pydantic snapshots."""

    def _to_schema(self, row):
        sections, removed = sanitize_sections(row.sections if row.sections is not None else [])
        if removed:
            self.logger.warning(f"Template {row.id} has {removed} malformed field(s); they were skipped")
        return InspectionTemplate(
            id=row.id,
            title=row.title,
            description=row.description or '',
            category=row.category or '',
            tags=[t for t in json_list(row.tags) if isinstance(t, str)],
            sections=sections,
            status=row.status,
            is_active=bool(row.is_active),
            is_prebuilt=bool(row.is_prebuilt),
            created_by=row.created_by or '',
            created_at=row.created_at,
            updated_at=row.updated_at,
            malformed_field_count=removed,
        )

    def get(self, template_id):
        with self._scope("template lookup") as session:
            row = session.get(TemplateRow, template_id)
            return self._to_schema(row) if row else None

    def list(self, status=None, category=None, search=None):
        """Templates newest first, optionally filtered.

        Args:
            status (str): active, draft or archived
            category (str): exact category
            search (str): case-insensitive match on title or description
        """
        with self._scope("template listing") as session:
            query = session.query(TemplateRow)
            if status:
                query = query.filter(TemplateRow.status == status)
            if category:
                query = query.filter(TemplateRow.category == category)
            if search:
                pattern = f"%{search.strip().lower()}%"
                query = query.filter(or_(
                    func.lower(TemplateRow.title).like(pattern),
                    func.lower(TemplateRow.description).like(pattern),
                ))
            rows = query.order_by(TemplateRow.created_at.desc()).all()
            return [self._to_schema(row) for row in rows]

    def find_prebuilt_by_title(self, title):
        with self._scope("prebuilt template lookup") as session:
            row = session.query(TemplateRow).filter(
                TemplateRow.is_prebuilt.is_(True), TemplateRow.title == title
            ).first()
            return self._to_schema(row) if row else None

    def count(self, is_prebuilt=None):
        with self._scope("template count") as session:
            query = session.query(TemplateRow)
            if is_prebuilt is not None:
                query = query.filter(TemplateRow.is_prebuilt.is_(bool(is_prebuilt)))
            return query.count()

    def upsert(self, template):
        """Insert or fully replace a template; returns the stored snapshot."""
        with self._scope("template save") as session:
            row = session.get(TemplateRow, template.id)
            if row is None:
                row = TemplateRow(id=template.id)
                session.add(row)
            row.title = template.title
            row.description = template.description
            row.category = template.category
            row.tags = list(template.tags)
            row.sections = [s.model_dump(mode='json') for s in template.sections]
            row.status = template.status
            row.is_active = template.is_active
            row.is_prebuilt = template.is_prebuilt
            row.created_by = template.created_by
            row.created_at = to_storage_time(template.created_at)
            row.updated_at = to_storage_time(template.updated_at)
            session.flush()
            self.logger.debug(f"Saved template {template.id} ({template.title})")
            return self._to_schema(row)

    def delete(self, template_id):
        """Delete a template by id; returns True if a row was removed."""
        with self._scope("template delete") as session:
            row = session.get(TemplateRow, template_id)
            if row is None:
                return False
            session.delete(row)
            return True
