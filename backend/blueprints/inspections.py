"""Inspections blueprint: drafts, responses, validation and submission."""
from flask import Blueprint, jsonify, request
from shared.enums import InspectionStatus
from shared.schemas import ResponseRecord
from shared.validation import validate_choice
from .. import deps
from ..utils import json_payload, parse_body, current_caller, to_json

bp = Blueprint('inspections', __name__, url_prefix='/api')


@bp.route('/inspections', methods=['GET'])
def get_inspections():
    status = request.args.get('status')
    if status:
        validate_choice(status, 'status', [s.value for s in InspectionStatus])
    inspections = deps.inspection_service().list(current_caller(), status=status, query=request.args.get('q'))
    return jsonify(to_json(inspections))


@bp.route('/inspections', methods=['POST'])
def create_inspection():
    inspection = deps.inspection_service().create(current_caller(), json_payload())
    return jsonify(to_json(inspection)), 201


@bp.route('/inspections/drafts', methods=['POST'])
def save_inspection_draft():
    inspection = deps.inspection_service().save_draft(current_caller(), json_payload())
    return jsonify(to_json(inspection)), 201


@bp.route('/inspections/<inspection_id>', methods=['GET'])
def get_inspection(inspection_id):
    return jsonify(to_json(deps.inspection_service().get(current_caller(), inspection_id)))


@bp.route('/inspections/<inspection_id>', methods=['DELETE'])
def delete_inspection(inspection_id):
    deps.inspection_service().delete(current_caller(), inspection_id)
    return jsonify({'message': 'Inspection deleted'})


@bp.route('/inspections/<inspection_id>/responses/<field_id>', methods=['PUT'])
def record_response(inspection_id, field_id):
    """Record one answer. Body: ``{"value": ..., "updated_at": optional}``."""
    record = parse_body(ResponseRecord)
    inspection = deps.inspection_service().record_response(
        current_caller(), inspection_id, field_id, record.value, expected_updated_at=record.updated_at
    )
    return jsonify(to_json(inspection))


@bp.route('/inspections/<inspection_id>/start', methods=['POST'])
def start_inspection(inspection_id):
    return jsonify(to_json(deps.inspection_service().start(current_caller(), inspection_id)))


@bp.route('/inspections/<inspection_id>/validation', methods=['GET'])
def validate_inspection(inspection_id):
    check = deps.inspection_service().validate(current_caller(), inspection_id)
    data = check.model_dump(mode='json')
    data['message'] = check.message
    return jsonify(data)


@bp.route('/inspections/<inspection_id>/submit', methods=['POST'])
def submit_inspection(inspection_id):
    return jsonify(to_json(deps.inspection_service().submit(current_caller(), inspection_id)))


@bp.route('/inspections/<inspection_id>/progress', methods=['GET'])
def inspection_progress(inspection_id):
    return jsonify(to_json(deps.inspection_service().progress(current_caller(), inspection_id)))
