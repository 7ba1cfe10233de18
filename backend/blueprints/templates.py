"""Templates blueprint for Flask API."""
from flask import Blueprint, jsonify, request
from shared.enums import TemplateStatus
from shared.validation import NotFound, validate_choice
from .. import deps
from ..utils import json_payload, current_caller, to_json

bp = Blueprint('templates', __name__, url_prefix='/api')


@bp.route('/templates', methods=['GET'])
def get_templates():
    status = request.args.get('status')
    if status:
        validate_choice(status, 'status', [s.value for s in TemplateStatus])
    templates = deps.template_service().list(
        status=status,
        category=request.args.get('category'),
        search=request.args.get('q'),
    )
    return jsonify(to_json(templates))


@bp.route('/templates', methods=['POST'])
def create_template():
    template = deps.template_service().create(current_caller(), json_payload())
    return jsonify(to_json(template)), 201


@bp.route('/templates/drafts', methods=['POST'])
def save_template_draft():
    template = deps.template_service().save_draft(current_caller(), json_payload())
    return jsonify(to_json(template)), 201


@bp.route('/templates/<template_id>', methods=['GET'])
def get_template(template_id):
    template = deps.template_service().get(template_id)
    if template is None:
        raise NotFound(f"Template {template_id} not found")
    return jsonify(to_json(template))


@bp.route('/templates/<template_id>', methods=['PUT'])
def update_template(template_id):
    template = deps.template_service().update(current_caller(), template_id, json_payload())
    return jsonify(to_json(template))


@bp.route('/templates/<template_id>', methods=['DELETE'])
def delete_template(template_id):
    deps.template_service().delete(current_caller(), template_id)
    return jsonify({'message': 'Template deleted'})
