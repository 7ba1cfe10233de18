"""Inspection store backed by the ``inspections`` table."""
from sqlalchemy import or_, func
from shared.models import Inspection as InspectionRow, Assignment as AssignmentRow, to_app_time
from shared.schemas import Inspection, InspectionResponse
from shared.validation import sanitize_sections, ConflictError
from .base import BaseRepository, to_storage_time, json_list


class InspectionRepository(BaseRepository):
    """CRUD for inspections.

    Sections are stored as the snapshot taken at materialization; responses
    are stored as JSON and read back without coercion.
    """

    def _responses(self, row):
        responses = []
        for raw in json_list(row.responses):
            try:
                responses.append(InspectionResponse.model_validate(raw))
            except ValueError as e:
                self.logger.warning(f"Skipping unreadable response on inspection {row.id}: {e}")
        return responses

    def _to_schema(self, row):
        sections, removed = sanitize_sections(row.sections if row.sections is not None else [])
        if removed:
            self.logger.warning(f"Inspection {row.id} has {removed} malformed field(s); they were skipped")
        return Inspection(
            id=row.id,
            template_id=row.template_id,
            title=row.title or '',
            location=row.location or '',
            inspector=row.inspector or '',
            date=row.date or '',
            time=row.time or '',
            status=row.status,
            priority=row.priority,
            sections=sections,
            responses=self._responses(row),
            photos=[p for p in json_list(row.photos) if isinstance(p, str)],
            score=row.score,
            issues=row.issues or 0,
            categories=[c for c in json_list(row.categories) if isinstance(c, str)],
            description=row.description,
            created_at=row.created_at,
            updated_at=row.updated_at,
            completed_at=row.completed_at,
            malformed_field_count=removed,
        )

    def get(self, inspection_id):
        with self._scope("inspection lookup") as session:
            row = session.get(InspectionRow, inspection_id)
            return self._to_schema(row) if row else None

    def list_all(self):
        with self._scope("inspection listing") as session:
            rows = session.query(InspectionRow).order_by(InspectionRow.updated_at.desc()).all()
            return [self._to_schema(row) for row in rows]

    def list_by_status(self, status):
        with self._scope("inspection listing") as session:
            rows = session.query(InspectionRow).filter(
                InspectionRow.status == status
            ).order_by(InspectionRow.updated_at.desc()).all()
            return [self._to_schema(row) for row in rows]

    def search(self, query):
        """Case-insensitive match on title, location or inspector."""
        pattern = f"%{(query or '').strip().lower()}%"
        with self._scope("inspection search") as session:
            rows = session.query(InspectionRow).filter(or_(
                func.lower(InspectionRow.title).like(pattern),
                func.lower(InspectionRow.location).like(pattern),
                func.lower(InspectionRow.inspector).like(pattern),
            )).order_by(InspectionRow.updated_at.desc()).all()
            return [self._to_schema(row) for row in rows]

    def upsert(self, inspection, expected_updated_at=None):
        """Insert or fully replace an inspection.

        Args:
            inspection (Inspection): snapshot to store
            expected_updated_at (datetime): when given, the stored row must
                still carry this ``updated_at`` or ConflictError is raised

        Returns:
            Inspection: the stored snapshot
        """
        with self._scope("inspection save") as session:
            row = session.get(InspectionRow, inspection.id)
            if expected_updated_at is not None:
                stored = to_app_time(row.updated_at) if row is not None else None
                if stored != to_app_time(expected_updated_at):
                    raise ConflictError(f"Inspection {inspection.id} was modified by someone else")
            if row is None:
                row = InspectionRow(id=inspection.id)
                session.add(row)
            row.template_id = inspection.template_id
            row.title = inspection.title
            row.location = inspection.location
            row.inspector = inspection.inspector
            row.date = inspection.date
            row.time = inspection.time
            row.status = inspection.status
            row.priority = inspection.priority
            row.sections = [s.model_dump(mode='json') for s in inspection.sections]
            row.responses = [r.model_dump(mode='json') for r in inspection.responses]
            row.photos = list(inspection.photos)
            row.score = inspection.score
            row.issues = inspection.issues
            row.categories = list(inspection.categories)
            row.description = inspection.description
            row.created_at = to_storage_time(inspection.created_at)
            row.updated_at = to_storage_time(inspection.updated_at)
            row.completed_at = to_storage_time(inspection.completed_at)
            session.flush()
            return self._to_schema(row)

    def delete(self, inspection_id):
        """Delete an inspection and the assignments bound to it."""
        with self._scope("inspection delete") as session:
            row = session.get(InspectionRow, inspection_id)
            if row is None:
                return False
            removed = session.query(AssignmentRow).filter(
                AssignmentRow.inspection_id == inspection_id
            ).delete(synchronize_session=False)
            if removed:
                self.logger.info(f"Removed {removed} assignment(s) bound to inspection {inspection_id}")
            session.delete(row)
            return True
