"""Dashboard statistics over the inspections and assignments a caller can see."""
import logging
from shared.enums import AssignmentStatus, InspectionPriority, InspectionStatus, TemplateStatus, UserRole, UserStatus
from shared.models import now
from shared.permissions import default_policy
from shared.schemas import DashboardStats, UpcomingTask

# Sample size for the average completion time
COMPLETION_SAMPLE = 100


class DashboardService:
    def __init__(self, inspection_service, assignments, templates, users, policy=None, clock=now):
        self.inspection_service = inspection_service
        self.assignments = assignments
        self.templates = templates
        self.users = users
        self.policy = policy or default_policy
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)

    def _visible_assignments(self, caller):
        if self.policy.has_permission(caller, 'can_view_all_assignments'):
            return self.assignments.list_all()
        if self.policy.has_permission(caller, 'can_assign_inspections'):
            mine = {a.id: a for a in self.assignments.list_by_assigner(caller.id)}
            mine.update((a.id, a) for a in self.assignments.list_by_assignee(caller.id))
            return list(mine.values())
        return self.assignments.list_by_assignee(caller.id)

    def stats(self, caller):
        at = self.clock()
        inspections = self.inspection_service.list(caller)
        completed = [i for i in inspections if i.status == InspectionStatus.COMPLETED and i.completed_at]
        today = at.date()
        month_start = at.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        scores = [i.score for i in completed if i.score is not None]
        sample = sorted(completed, key=lambda i: i.completed_at, reverse=True)[:COMPLETION_SAMPLE]
        hours = [(i.completed_at - i.created_at).total_seconds() / 3600 for i in sample]

        last = None
        if inspections:
            last = max((i.completed_at or i.created_at) for i in inspections)

        active_templates = [t for t in self.templates.list(status=TemplateStatus.ACTIVE.value) if t.is_active]

        return DashboardStats(
            total_inspections=len(inspections),
            pending_inspections=sum(1 for i in inspections if i.status != InspectionStatus.COMPLETED),
            completed_today=sum(1 for i in completed if i.completed_at.date() == today),
            critical_issues=sum(1 for i in inspections
                                if i.priority == InspectionPriority.CRITICAL and i.status != InspectionStatus.COMPLETED),
            safety_score=round(sum(scores) / len(scores)) if scores else 0,
            last_inspection_at=last,
            total_templates=len(active_templates),
            active_inspectors=len(self.users.list_by_role(UserRole.INSPECTOR, UserStatus.APPROVED)),
            completed_this_month=sum(1 for i in completed if i.completed_at >= month_start),
            avg_completion_hours=round(sum(hours) / len(hours)) if hours else 0,
            overdue_assignments=sum(1 for a in self._visible_assignments(caller) if a.is_overdue(at)),
        )

    def upcoming(self, caller, limit=10):
        """Open assignments with a due date, soonest first."""
        at = self.clock()
        open_assignments = [
            a for a in self._visible_assignments(caller)
            if a.status != AssignmentStatus.COMPLETED and a.due_date is not None
        ]
        open_assignments.sort(key=lambda a: a.due_date)

        tasks = []
        for assignment in open_assignments[:limit]:
            inspection = self.inspection_service.inspections.get(assignment.inspection_id)
            assignee = self.users.get(assignment.assigned_to)
            tasks.append(UpcomingTask(
                assignment_id=assignment.id,
                inspection_id=assignment.inspection_id,
                title=(inspection.title if inspection else None) or assignment.notes or 'Inspection Assignment',
                due_date=assignment.due_date,
                assigned_to=assignment.assigned_to,
                assignee_name=assignee.display_name if assignee else '',
                priority=assignment.priority,
                status=assignment.status,
                overdue=assignment.is_overdue(at),
            ))
        return tasks

    def recent(self, caller, limit=5):
        """Most recently created inspections visible to the caller."""
        inspections = self.inspection_service.list(caller)
        return sorted(inspections, key=lambda i: i.created_at, reverse=True)[:limit]
