"""Assignment store backed by the ``inspection_assignments`` table."""
from shared.models import Assignment as AssignmentRow
from shared.schemas import Assignment
from .base import BaseRepository, to_storage_time


class AssignmentRepository(BaseRepository):
    """CRUD for assignments. Lists are newest first."""

    def _to_schema(self, row):
        return Assignment(
            id=row.id,
            inspection_id=row.inspection_id,
            assigned_to=row.assigned_to,
            assigned_by=row.assigned_by,
            assigned_at=row.assigned_at,
            due_date=row.due_date,
            priority=row.priority,
            status=row.status,
            notes=row.notes,
        )

    def _list(self, operation, *criteria):
        with self._scope(operation) as session:
            rows = session.query(AssignmentRow).filter(*criteria).order_by(
                AssignmentRow.assigned_at.desc()
            ).all()
            return [self._to_schema(row) for row in rows]

    def get(self, assignment_id):
        with self._scope("assignment lookup") as session:
            row = session.get(AssignmentRow, assignment_id)
            return self._to_schema(row) if row else None

    def get_by_inspection(self, inspection_id):
        """Most recent assignment bound to an inspection, or None."""
        with self._scope("assignment lookup") as session:
            row = session.query(AssignmentRow).filter(
                AssignmentRow.inspection_id == inspection_id
            ).order_by(AssignmentRow.assigned_at.desc()).first()
            return self._to_schema(row) if row else None

    def list_by_assignee(self, user_id):
        return self._list("assignment listing", AssignmentRow.assigned_to == user_id)

    def list_by_assigner(self, user_id):
        return self._list("assignment listing", AssignmentRow.assigned_by == user_id)

    def list_all(self):
        return self._list("assignment listing")

    def upsert(self, assignment):
        with self._scope("assignment save") as session:
            row = session.get(AssignmentRow, assignment.id)
            if row is None:
                row = AssignmentRow(id=assignment.id)
                session.add(row)
            row.inspection_id = assignment.inspection_id
            row.assigned_to = assignment.assigned_to
            row.assigned_by = assignment.assigned_by
            row.assigned_at = to_storage_time(assignment.assigned_at)
            row.due_date = to_storage_time(assignment.due_date)
            row.priority = assignment.priority
            row.status = assignment.status
            row.notes = assignment.notes
            session.flush()
            return self._to_schema(row)

    def delete(self, assignment_id):
        with self._scope("assignment delete") as session:
            row = session.get(AssignmentRow, assignment_id)
            if row is None:
                return False
            session.delete(row)
            return True
