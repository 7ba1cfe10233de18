"""Assignments blueprint."""
from flask import Blueprint, jsonify, request
from shared.schemas import AssignmentCreate
from shared.validation import validate_choice
from .. import deps
from ..utils import parse_body, current_caller, to_json

bp = Blueprint('assignments', __name__, url_prefix='/api')

SCOPES = ('mine', 'managed', 'all')


@bp.route('/assignments', methods=['GET'])
def get_assignments():
    """Assignments by scope: ``mine`` (default), ``managed`` or ``all``."""
    caller = current_caller()
    scope = validate_choice(request.args.get('scope', 'mine'), 'scope', SCOPES)
    service = deps.assignment_service()
    if scope == 'all':
        assignments = service.list_all(caller)
    elif scope == 'managed':
        assignments = service.list_for_manager(caller, caller.id)
    else:
        assignments = service.list_for_inspector(caller, caller.id)
    return jsonify(to_json(assignments))


@bp.route('/assignments', methods=['POST'])
def create_assignment():
    payload = parse_body(AssignmentCreate)
    assignment = deps.assignment_service().create(
        current_caller(),
        payload.source_id,
        payload.assigned_to,
        priority=payload.priority,
        due_date=payload.due_date,
        notes=payload.notes,
        title=payload.title,
        location=payload.location,
    )
    return jsonify(to_json(assignment)), 201


@bp.route('/assignments/inspectors', methods=['GET'])
def assignable_users():
    users = deps.assignment_service().assignable_users(current_caller())
    return jsonify(to_json(users))


@bp.route('/assignments/<assignment_id>', methods=['GET'])
def get_assignment(assignment_id):
    return jsonify(to_json(deps.assignment_service().get(current_caller(), assignment_id)))


@bp.route('/assignments/<assignment_id>', methods=['DELETE'])
def delete_assignment(assignment_id):
    deps.assignment_service().remove(current_caller(), assignment_id)
    return jsonify({'message': 'Assignment removed'})


@bp.route('/assignments/<assignment_id>/start', methods=['POST'])
def start_assignment(assignment_id):
    return jsonify(to_json(deps.assignment_service().start(current_caller(), assignment_id)))
