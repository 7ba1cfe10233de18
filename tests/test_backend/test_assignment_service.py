"""Tests for the assignment service."""
from datetime import timedelta
from unittest import mock
import pytest
from backend.services.assignment_service import inspection_priority
from shared.models import now
from shared.validation import ValidationError, PermissionDenied, NotFound, ConflictError, StoreError


class TestCreateAssignment:
    def test_template_source_materializes_inspection(self, assignment_service, inspection_store, callers,
                                                     users, sample_template):
        due = now() + timedelta(days=2)
        assignment = assignment_service.create(
            callers['manager'], sample_template.id, users['inspector'].id,
            priority='high', due_date=due, notes='Check the racking',
        )
        assert assignment.status == 'assigned'
        assert assignment.assigned_by == callers['manager'].id
        assert assignment.priority == 'high'
        assert assignment.due_date == due

        inspection = inspection_store.get(assignment.inspection_id)
        assert inspection.template_id == sample_template.id
        assert inspection.title == 'Warehouse Walkthrough - Ivy Inspector'
        assert inspection.location == 'To be determined'
        assert inspection.inspector == 'Ivy Inspector'
        assert inspection.priority == 'high'

    def test_title_and_location_overrides(self, assignment_service, inspection_store, callers, users,
                                          sample_template):
        assignment = assignment_service.create(callers['admin'], sample_template.id, users['second_inspector'].id,
                                               title='Night shift walk', location='Bay 9')
        inspection = inspection_store.get(assignment.inspection_id)
        assert (inspection.title, inspection.location) == ('Night shift walk', 'Bay 9')
        # no full name, so the email stands in
        assert inspection.inspector == 'second@example.com'

    def test_urgent_becomes_critical_inspection(self, assignment_service, inspection_store, callers, users,
                                                sample_template):
        assignment = assignment_service.create(callers['manager'], sample_template.id, users['inspector'].id,
                                               priority='urgent')
        assert assignment.priority == 'urgent'
        assert inspection_store.get(assignment.inspection_id).priority == 'critical'
        assert inspection_priority('low') == 'low'

    def test_existing_inspection_source(self, assignment_service, inspection_service, callers, users):
        inspection = inspection_service.create(callers['manager'], {'title': 'Ad hoc'})
        assignment = assignment_service.create(callers['manager'], inspection.id, users['inspector'].id)
        assert assignment.inspection_id == inspection.id
        assert assignment_service.get_for_inspection(inspection.id).id == assignment.id

    def test_open_assignment_blocks_reassignment(self, assignment_service, inspection_service, callers, users,
                                                 sample_template):
        first = assignment_service.create(callers['manager'], sample_template.id, users['inspector'].id)
        with pytest.raises(ConflictError, match='already assigned'):
            assignment_service.create(callers['manager'], first.inspection_id, users['second_inspector'].id)
        assert assignment_service.get_for_inspection(first.inspection_id).id == first.id
        second = callers['second_inspector']
        assert assignment_service.list_for_inspector(second, second.id) == []

        inspector = callers['inspector']
        for field_id, value in (('inspector', 'Ivy Inspector'), ('location', 'Bay 4'),
                                ('fire_extinguishers', True), ('condition', 'Good')):
            inspection_service.record_response(inspector, first.inspection_id, field_id, value)
        inspection_service.submit(inspector, first.inspection_id)
        assert assignment_service.get(inspector, first.id).status == 'completed'

    def test_removed_assignment_frees_the_inspection(self, assignment_service, callers, users, sample_template):
        first = assignment_service.create(callers['manager'], sample_template.id, users['inspector'].id)
        assignment_service.remove(callers['manager'], first.id)
        second = assignment_service.create(callers['manager'], first.inspection_id, users['second_inspector'].id)
        assert assignment_service.get_for_inspection(first.inspection_id).id == second.id

    def test_completed_inspection_cannot_be_assigned(self, assignment_service, inspection_service,
                                                     inspection_store, callers, users):
        inspection = inspection_service.create(callers['manager'], {'title': 'Done'})
        inspection_store.upsert(inspection.model_copy(update={'status': 'completed', 'completed_at': now()}))
        with pytest.raises(ConflictError):
            assignment_service.create(callers['manager'], inspection.id, users['inspector'].id)

    def test_unknown_source(self, assignment_service, callers, users):
        with pytest.raises(NotFound):
            assignment_service.create(callers['manager'], 'missing', users['inspector'].id)

    def test_bad_priority(self, assignment_service, callers, users, sample_template):
        with pytest.raises(ValidationError, match='priority'):
            assignment_service.create(callers['manager'], sample_template.id, users['inspector'].id,
                                      priority='whenever')

    def test_assignee_rules(self, assignment_service, inspection_store, callers, users, sample_template):
        """Pending users and roles outside the caller's reach are not assignable."""
        with pytest.raises(NotFound):
            assignment_service.create(callers['manager'], sample_template.id, users['pending'].id)
        with pytest.raises(NotFound):
            assignment_service.create(callers['manager'], sample_template.id, users['other_manager'].id)
        with pytest.raises(NotFound):
            assignment_service.create(callers['manager'], sample_template.id, 'nobody')
        assert inspection_store.list_all() == []

        # admins may assign managers
        assignment_service.create(callers['admin'], sample_template.id, users['other_manager'].id)

    def test_inspector_cannot_assign(self, assignment_service, callers, users, sample_template):
        with pytest.raises(PermissionDenied):
            assignment_service.create(callers['inspector'], sample_template.id, users['second_inspector'].id)

    def test_failed_save_removes_materialized_inspection(self, assignment_service, assignment_store,
                                                         inspection_store, callers, users, sample_template):
        with mock.patch.object(assignment_store, 'upsert', side_effect=StoreError('disk full')):
            with pytest.raises(StoreError):
                assignment_service.create(callers['manager'], sample_template.id, users['inspector'].id)
        assert inspection_store.list_all() == []


class TestAssignmentLifecycle:
    @pytest.fixture
    def assignment(self, assignment_service, callers, users, sample_template):
        return assignment_service.create(callers['manager'], sample_template.id, users['inspector'].id)

    def test_start_moves_inspection_in_lockstep(self, assignment_service, inspection_store, callers, assignment):
        started = assignment_service.start(callers['inspector'], assignment.id)
        assert started.status == 'in_progress'
        assert inspection_store.get(assignment.inspection_id).status == 'in-progress'
        assert assignment_service.start(callers['inspector'], assignment.id).status == 'in_progress'

    def test_only_assignee_or_supervisor_starts(self, assignment_service, callers, assignment):
        with pytest.raises(PermissionDenied):
            assignment_service.start(callers['second_inspector'], assignment.id)
        assert assignment_service.start(callers['admin'], assignment.id).status == 'in_progress'

    def test_completed_assignment_cannot_restart(self, assignment_service, callers, assignment):
        assignment_service.mark_completed(assignment.id)
        with pytest.raises(ConflictError):
            assignment_service.start(callers['inspector'], assignment.id)
        assert assignment_service.mark_completed(assignment.id).status == 'completed'

    def test_mark_completed_for_unassigned_inspection(self, assignment_service):
        assert assignment_service.mark_completed_for_inspection('no-such-inspection') is None

    def test_get_access(self, assignment_service, callers, assignment):
        assert assignment_service.get(callers['inspector'], assignment.id).id == assignment.id
        assert assignment_service.get(callers['other_manager'], assignment.id).id == assignment.id
        with pytest.raises(PermissionDenied):
            assignment_service.get(callers['second_inspector'], assignment.id)
        with pytest.raises(NotFound):
            assignment_service.get(callers['admin'], 'missing')

    def test_managers_remove_only_their_own(self, assignment_service, inspection_store, callers, assignment):
        with pytest.raises(PermissionDenied):
            assignment_service.remove(callers['other_manager'], assignment.id)
        with pytest.raises(PermissionDenied):
            assignment_service.remove(callers['inspector'], assignment.id)
        assignment_service.remove(callers['manager'], assignment.id)
        with pytest.raises(NotFound):
            assignment_service.get(callers['manager'], assignment.id)
        # the inspection survives its assignment
        assert inspection_store.get(assignment.inspection_id) is not None

    def test_admin_removes_any(self, assignment_service, callers, assignment):
        assignment_service.remove(callers['admin'], assignment.id)
        assert assignment_service.get_for_inspection(assignment.inspection_id) is None


class TestAssignmentQueries:
    def test_listings(self, assignment_service, callers, users, sample_template):
        mine = assignment_service.create(callers['manager'], sample_template.id, users['inspector'].id)
        theirs = assignment_service.create(callers['other_manager'], sample_template.id,
                                           users['second_inspector'].id)

        assert [a.id for a in assignment_service.list_for_inspector(callers['inspector'], users['inspector'].id)] \
            == [mine.id]
        assert [a.id for a in assignment_service.list_for_manager(callers['manager'], callers['manager'].id)] \
            == [mine.id]
        assert {a.id for a in assignment_service.list_all(callers['admin'])} == {mine.id, theirs.id}

        with pytest.raises(PermissionDenied):
            assignment_service.list_for_inspector(callers['inspector'], users['second_inspector'].id)
        with pytest.raises(PermissionDenied):
            assignment_service.list_for_manager(callers['manager'], callers['other_manager'].id)
        with pytest.raises(PermissionDenied):
            assignment_service.list_all(callers['manager'])

    def test_overdue_is_derived(self, assignment_service, assignment_store, callers, users, sample_template):
        late = assignment_service.create(callers['manager'], sample_template.id, users['inspector'].id,
                                         due_date=now() - timedelta(days=1))
        assignment_service.create(callers['manager'], sample_template.id, users['inspector'].id,
                                  due_date=now() + timedelta(days=1))
        done = assignment_service.create(callers['manager'], sample_template.id, users['inspector'].id,
                                         due_date=now() - timedelta(days=3))
        assignment_service.mark_completed(done.id)

        assert [a.id for a in assignment_service.list_overdue()] == [late.id]
        stored = assignment_store.get(late.id)
        assert stored.status == 'assigned'
        assert stored.display_status == 'overdue'

    def test_assignable_people(self, assignment_service, callers, users):
        inspectors = assignment_service.available_inspectors()
        assert [u.display_name for u in inspectors] == ['Ivy Inspector', 'second@example.com']

        assert {u.role for u in assignment_service.assignable_users(callers['manager'])} == {'inspector'}
        assert len(assignment_service.assignable_users(callers['admin'])) == 5
        with pytest.raises(PermissionDenied):
            assignment_service.assignable_users(callers['inspector'])
