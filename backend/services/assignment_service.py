"""Assignment state machine: assigned -> in_progress -> completed.

An assignment and its inspection move together: starting an assignment
starts the inspection, and completing the inspection completes the
assignment. ``overdue`` is never stored, it is derived when read.
"""
import logging
from shared import inspection_engine as engine
from shared.enums import AssignmentPriority, AssignmentStatus, InspectionPriority, InspectionStatus, UserRole, UserStatus
from shared.models import now, to_app_time
from shared.permissions import default_policy
from shared.schemas import Assignment
from shared.utils import generate_id
from shared.validation import PermissionDenied, NotFound, ConflictError, StoreError, validate_choice

# Assignment priorities that have no inspection priority of the same name
INSPECTION_PRIORITY_FOR = {
    AssignmentPriority.URGENT.value: InspectionPriority.CRITICAL.value,
}


def inspection_priority(priority):
    value = AssignmentPriority(priority).value
    return INSPECTION_PRIORITY_FOR.get(value, value)


class AssignmentService:
    """Role-gated assignment operations over the assignment, inspection,
    template and user stores."""

    def __init__(self, assignments, inspections, templates, users, policy=None,
                 default_location='To be determined', clock=now):
        self.assignments = assignments
        self.inspections = inspections
        self.templates = templates
        self.users = users
        self.policy = policy or default_policy
        self.default_location = default_location
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)

    def _assignee(self, caller, assignee_id):
        user = self.users.get(assignee_id)
        allowed = [r.value for r in self.policy.assignable_roles(caller.role)]
        if user is None or user.status != UserStatus.APPROVED or user.role not in allowed:
            raise NotFound(f"No assignable user {assignee_id}")
        return user

    def _load(self, assignment_id):
        assignment = self.assignments.get(assignment_id)
        if assignment is None:
            raise NotFound(f"Assignment {assignment_id} not found")
        return assignment

    def create(self, caller, source_id, assignee_id, priority=AssignmentPriority.MEDIUM, due_date=None,
               notes=None, title=None, location=None):
        """Assign a template or an existing inspection to a user.

        A template source is materialized into a new inspection first.

        Args:
            caller (Caller): who assigns
            source_id (str): template id or inspection id
            assignee_id (str): approved user with a role the caller may assign to
            priority (str): low, medium, high or urgent
            due_date (datetime): optional deadline
            notes, title, location (str): optional; title and location only
                apply to inspections materialized from a template

        Raises:
            PermissionDenied: caller cannot assign inspections
            NotFound: unknown source, or assignee missing, unapproved or out of reach
            ConflictError: the inspection is already completed, or already has
                an open assignment
        """
        self.policy.require(caller, 'can_assign_inspections')
        validate_choice(priority, 'priority', [p.value for p in AssignmentPriority])
        priority = AssignmentPriority(priority).value
        assignee = self._assignee(caller, assignee_id)
        at = self.clock()

        materialized = False
        template = self.templates.get(source_id)
        if template is not None:
            inspection = engine.materialize(template, overrides={
                'title': title or f"{template.title} - {assignee.display_name}",
                'location': location or self.default_location,
                'inspector': assignee.display_name,
                'priority': inspection_priority(priority),
            }, now=at)
            inspection = self.inspections.upsert(inspection)
            materialized = True
            self.logger.info(f"Materialized inspection {inspection.id} from template {template.id}")
        else:
            inspection = self.inspections.get(source_id)
            if inspection is None:
                raise NotFound(f"No template or inspection {source_id}")
            if inspection.status == InspectionStatus.COMPLETED:
                raise ConflictError(f"Inspection {inspection.id} is already completed")
            current = self.assignments.get_by_inspection(inspection.id)
            if current is not None and current.status != AssignmentStatus.COMPLETED:
                raise ConflictError(f"Inspection {inspection.id} is already assigned ({current.id})")

        assignment = Assignment(
            id=generate_id(),
            inspection_id=inspection.id,
            assigned_to=assignee.id,
            assigned_by=caller.id,
            assigned_at=at,
            due_date=to_app_time(due_date),
            priority=priority,
            status=AssignmentStatus.ASSIGNED,
            notes=notes,
        )
        try:
            stored = self.assignments.upsert(assignment)
        except StoreError:
            if materialized:
                self.logger.error(f"Assignment save failed; removing materialized inspection {inspection.id}")
                self.inspections.delete(inspection.id)
            raise
        self.logger.info(f"Assignment created: {stored.id} -> {assignee.id} by {caller.id}")
        return stored

    def get(self, caller, assignment_id):
        assignment = self._load(assignment_id)
        if caller.id in (assignment.assigned_to, assignment.assigned_by):
            return assignment
        if self.policy.has_permission(caller, 'can_view_all_inspections'):
            return assignment
        raise PermissionDenied(f"Assignment {assignment_id} is not accessible to this user")

    def get_for_inspection(self, inspection_id):
        return self.assignments.get_by_inspection(inspection_id)

    def start(self, caller, assignment_id):
        """Assignee (or a supervisor) starts work; starts the inspection too.

        Already in progress is a no-op; completed raises ConflictError.
        """
        assignment = self._load(assignment_id)
        if caller.id != assignment.assigned_to and not self.policy.has_permission(caller, 'can_view_all_inspections'):
            raise PermissionDenied("Only the assignee can start this assignment")
        if assignment.status == AssignmentStatus.COMPLETED:
            raise ConflictError(f"Assignment {assignment_id} is already completed")
        if assignment.status == AssignmentStatus.IN_PROGRESS:
            return assignment

        inspection = self.inspections.get(assignment.inspection_id)
        if inspection is not None:
            started = engine.begin_work(inspection, now=self.clock())
            if started is not inspection:
                self.inspections.upsert(started)

        updated = assignment.model_copy(update={'status': AssignmentStatus.IN_PROGRESS.value})
        stored = self.assignments.upsert(updated)
        self.logger.info(f"Assignment started: {assignment_id} by {caller.id}")
        return stored

    def mark_completed(self, assignment_id):
        """Complete an assignment once its inspection has been completed."""
        assignment = self._load(assignment_id)
        if assignment.status == AssignmentStatus.COMPLETED:
            return assignment
        stored = self.assignments.upsert(
            assignment.model_copy(update={'status': AssignmentStatus.COMPLETED.value})
        )
        self.logger.info(f"Assignment completed: {assignment_id}")
        return stored

    def mark_completed_for_inspection(self, inspection_id):
        assignment = self.assignments.get_by_inspection(inspection_id)
        if assignment is None:
            return None
        return self.mark_completed(assignment.id)

    def mark_started_for_inspection(self, inspection_id):
        assignment = self.assignments.get_by_inspection(inspection_id)
        if assignment is None or assignment.status != AssignmentStatus.ASSIGNED:
            return assignment
        return self.assignments.upsert(
            assignment.model_copy(update={'status': AssignmentStatus.IN_PROGRESS.value})
        )

    def remove(self, caller, assignment_id):
        """Delete the assignment only; its inspection is kept."""
        self.policy.require(caller, 'can_assign_inspections')
        assignment = self._load(assignment_id)
        if assignment.assigned_by != caller.id and not self.policy.has_permission(caller, 'can_view_all_assignments'):
            raise PermissionDenied("Managers can only remove assignments they created")
        self.assignments.delete(assignment_id)
        self.logger.info(f"Assignment removed: {assignment_id} by {caller.id}")

    def list_for_inspector(self, caller, user_id):
        if caller.id != user_id and not self.policy.has_permission(caller, 'can_view_all_inspections'):
            raise PermissionDenied("Cannot view another user's assignments")
        return self.assignments.list_by_assignee(user_id)

    def list_for_manager(self, caller, manager_id):
        self.policy.require(caller, 'can_assign_inspections')
        if caller.id != manager_id and not self.policy.has_permission(caller, 'can_view_all_assignments'):
            raise PermissionDenied("Cannot view assignments created by another user")
        return self.assignments.list_by_assigner(manager_id)

    def list_all(self, caller):
        self.policy.require(caller, 'can_view_all_assignments')
        return self.assignments.list_all()

    def list_overdue(self, at=None):
        at = at or self.clock()
        return [a for a in self.assignments.list_all() if a.is_overdue(at)]

    def available_inspectors(self):
        return self.users.list_by_role(UserRole.INSPECTOR, UserStatus.APPROVED)

    def assignable_users(self, caller):
        self.policy.require(caller, 'can_assign_inspections')
        roles = [r.value for r in self.policy.assignable_roles(caller.role)]
        return [u for u in self.users.list_by_role(status=UserStatus.APPROVED) if u.role in roles]
