"""Tests for the inspection service."""
from datetime import timedelta
from unittest import mock
import pytest
from shared.validation import ValidationError, PermissionDenied, NotFound, ConflictError, StoreError


@pytest.fixture
def assigned(assignment_service, callers, users, sample_template):
    """Assignment of the sample template to the inspector, created by the manager."""
    return assignment_service.create(callers['manager'], sample_template.id, users['inspector'].id)


def fill_required(service, caller, inspection_id):
    for field_id, value in (('inspector', 'Ivy Inspector'), ('location', 'Bay 4'),
                            ('fire_extinguishers', False), ('condition', 'Good')):
        service.record_response(caller, inspection_id, field_id, value)


class TestCreate:
    def test_inspection_is_a_snapshot_of_the_template(self, inspection_service, template_service, callers,
                                                      sample_template, sample_sections):
        inspection = inspection_service.create(callers['manager'], {
            'template_id': sample_template.id, 'location': 'Dock 1'
        })
        assert inspection.status == 'pending'
        assert inspection.inspector == 'Max Manager'
        assert inspection.categories == ['safety']

        sample_sections[1]['fields'] = sample_sections[1]['fields'][:1]
        template_service.update(callers['admin'], sample_template.id, {
            'title': 'Changed', 'sections': sample_sections
        })
        stored = inspection_service.get(callers['manager'], inspection.id)
        assert len(stored.sections[1].fields) == 4
        assert stored.title == 'Warehouse Walkthrough'

    def test_ad_hoc_inspection_uses_general_information(self, inspection_service, callers):
        inspection = inspection_service.create(callers['admin'], {'title': 'Spot check'})
        assert inspection.template_id is None
        assert inspection.sections[0].title == 'General Information'

    def test_unknown_template(self, inspection_service, callers):
        with pytest.raises(NotFound):
            inspection_service.create(callers['admin'], {'template_id': 'missing'})

    def test_inspector_cannot_create(self, inspection_service, callers):
        with pytest.raises(PermissionDenied):
            inspection_service.create(callers['inspector'], {'title': 'Mine'})


class TestAccess:
    def test_inspector_sees_only_assigned_work(self, inspection_service, callers, assigned):
        other = inspection_service.create(callers['manager'], {'title': 'Unassigned'})

        assert [i.id for i in inspection_service.list(callers['inspector'])] == [assigned.inspection_id]
        assert inspection_service.get(callers['inspector'], assigned.inspection_id).id == assigned.inspection_id
        with pytest.raises(PermissionDenied):
            inspection_service.get(callers['inspector'], other.id)
        with pytest.raises(PermissionDenied):
            inspection_service.get(callers['second_inspector'], assigned.inspection_id)
        assert inspection_service.list(callers['second_inspector']) == []

    def test_supervisors_see_everything(self, inspection_service, callers, assigned):
        inspection_service.create(callers['manager'], {'title': 'Roof', 'location': 'North wing'})
        assert len(inspection_service.list(callers['admin'])) == 2
        assert [i.title for i in inspection_service.list(callers['manager'], query='north')] == ['Roof']
        assert len(inspection_service.list(callers['manager'], status='pending')) == 2

    def test_missing_inspection(self, inspection_service, callers):
        with pytest.raises(NotFound):
            inspection_service.get(callers['admin'], 'missing')


class TestResponses:
    def test_falsy_answers_round_trip(self, inspection_service, callers, assigned):
        inspector = callers['inspector']
        inspection_id = assigned.inspection_id
        inspection_service.record_response(inspector, inspection_id, 'fire_extinguishers', False)
        inspection_service.record_response(inspector, inspection_id, 'extinguisher_count', 0)
        inspection_service.record_response(inspector, inspection_id, 'notes', '')

        stored = inspection_service.get(inspector, inspection_id)
        values = {r.field_id: r.value for r in stored.responses}
        assert values['fire_extinguishers'] is False
        assert values['extinguisher_count'] == 0
        assert not isinstance(values['extinguisher_count'], bool)
        assert values['notes'] == ''
        assert sum(1 for r in stored.responses if r.field_id == 'fire_extinguishers') == 1

    def test_values_are_checked_against_the_field(self, inspection_service, callers, assigned):
        with pytest.raises(ValidationError, match='no more than 50') as exc:
            inspection_service.record_response(callers['inspector'], assigned.inspection_id, 'extinguisher_count', 99)
        assert exc.value.field_id == 'extinguisher_count'
        assert exc.value.section_id == 2
        with pytest.raises(ValidationError):
            inspection_service.record_response(callers['inspector'], assigned.inspection_id, 'condition', 'Great')

    def test_text_answers_are_sanitized(self, inspection_service, callers, assigned):
        stored = inspection_service.record_response(
            callers['inspector'], assigned.inspection_id, 'notes', '<script>x</script>Loose rail'
        )
        notes = [r.value for r in stored.responses if r.field_id == 'notes'][0]
        assert '<script>' not in notes
        assert 'Loose rail' in notes

    def test_stale_write_is_rejected(self, inspection_service, callers, assigned):
        before = inspection_service.get(callers['inspector'], assigned.inspection_id)
        inspection_service.record_response(callers['inspector'], before.id, 'location', 'Bay 1')
        with pytest.raises(ConflictError):
            inspection_service.record_response(
                callers['manager'], before.id, 'location', 'Bay 2',
                expected_updated_at=before.updated_at - timedelta(seconds=1),
            )
        current = inspection_service.get(callers['manager'], before.id)
        fresh = inspection_service.record_response(
            callers['manager'], before.id, 'location', 'Bay 2', expected_updated_at=current.updated_at
        )
        assert {r.field_id: r.value for r in fresh.responses}['location'] == 'Bay 2'

    def test_unassigned_inspector_cannot_answer(self, inspection_service, callers, assigned):
        with pytest.raises(PermissionDenied):
            inspection_service.record_response(callers['second_inspector'], assigned.inspection_id, 'notes', 'x')


class TestSubmission:
    def test_submit_blocked_until_required_fields_answered(self, inspection_service, callers, assigned):
        inspector = callers['inspector']
        with pytest.raises(ValidationError) as exc:
            inspection_service.submit(inspector, assigned.inspection_id)
        assert exc.value.field_id == 'inspector'
        assert inspection_service.get(inspector, assigned.inspection_id).status == 'pending'

        check = inspection_service.validate(inspector, assigned.inspection_id)
        assert not check.ok and check.section_index == 0

    def test_submit_completes_inspection_and_assignment(self, inspection_service, assignment_service,
                                                         callers, assigned):
        inspector = callers['inspector']
        fill_required(inspection_service, inspector, assigned.inspection_id)
        assert inspection_service.progress(inspector, assigned.inspection_id).overall_progress == 100.0

        completed = inspection_service.submit(inspector, assigned.inspection_id)
        assert completed.status == 'completed'
        assert completed.completed_at is not None
        assert assignment_service.get(inspector, assigned.id).status == 'completed'

        with pytest.raises(ConflictError):
            inspection_service.submit(inspector, assigned.inspection_id)
        unchanged = inspection_service.record_response(inspector, assigned.inspection_id, 'notes', 'late')
        assert 'late' not in [r.value for r in unchanged.responses]

    def test_assignment_failure_does_not_undo_completion(self, inspection_service, assignment_service,
                                                         callers, assigned):
        inspector = callers['inspector']
        fill_required(inspection_service, inspector, assigned.inspection_id)
        with mock.patch.object(assignment_service, 'mark_completed_for_inspection',
                               side_effect=StoreError('assignments unavailable')):
            completed = inspection_service.submit(inspector, assigned.inspection_id)

        assert completed.status == 'completed'
        assert inspection_service.get(inspector, assigned.inspection_id).status == 'completed'
        assert assignment_service.get(inspector, assigned.id).status == 'assigned'

    def test_unexpected_assignment_error_is_logged(self, inspection_service, assignment_service,
                                                   callers, assigned, caplog):
        inspector = callers['inspector']
        fill_required(inspection_service, inspector, assigned.inspection_id)
        with mock.patch.object(assignment_service, 'mark_completed_for_inspection',
                               side_effect=RuntimeError('lost connection')):
            completed = inspection_service.submit(inspector, assigned.inspection_id)

        assert completed.status == 'completed'
        assert 'Could not update assignment' in caplog.text

    def test_start_moves_assignment_along(self, inspection_service, assignment_service, callers, assigned):
        started = inspection_service.start(callers['inspector'], assigned.inspection_id)
        assert started.status == 'in-progress'
        assert assignment_service.get(callers['inspector'], assigned.id).status == 'in_progress'
        assert inspection_service.start(callers['inspector'], assigned.inspection_id).status == 'in-progress'


class TestDrafts:
    def test_draft_title_and_resave(self, inspection_service, callers, sample_template):
        draft = inspection_service.save_draft(callers['manager'], {
            'template_id': sample_template.id, 'location': 'Yard',
        })
        assert draft.status == 'pending'
        assert draft.title.startswith('Warehouse Walkthrough - Yard (')
        assert draft.inspector == 'Max Manager'

        again = inspection_service.save_draft(callers['manager'], {'id': draft.id, 'location': 'Yard East'})
        assert again.id == draft.id
        assert again.location == 'Yard East'

    def test_draft_requires_general_information(self, inspection_service, callers, sample_template):
        with pytest.raises(ValidationError) as exc:
            inspection_service.save_draft(callers['manager'], {'template_id': sample_template.id})
        assert exc.value.field_id == 'location'

    def test_completed_inspection_is_not_a_draft(self, inspection_service, inspection_store, callers,
                                                 sample_template):
        draft = inspection_service.save_draft(callers['manager'], {
            'template_id': sample_template.id, 'location': 'Yard',
        })
        inspection_store.upsert(draft.model_copy(update={'status': 'completed'}))
        with pytest.raises(ConflictError):
            inspection_service.save_draft(callers['manager'], {'id': draft.id, 'location': 'Yard'})
        assert inspection_service.get(callers['manager'], draft.id).status == 'completed'


class TestDelete:
    def test_delete_removes_bound_assignment(self, inspection_service, assignment_store, callers, assigned):
        with pytest.raises(PermissionDenied):
            inspection_service.delete(callers['inspector'], assigned.inspection_id)
        inspection_service.delete(callers['manager'], assigned.inspection_id)
        assert assignment_store.get(assigned.id) is None
        with pytest.raises(NotFound):
            inspection_service.delete(callers['manager'], assigned.inspection_id)
