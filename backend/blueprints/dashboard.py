"""Dashboard blueprint."""
from flask import Blueprint, jsonify, request
from .. import deps
from ..utils import current_caller, to_json

bp = Blueprint('dashboard', __name__, url_prefix='/api')


@bp.route('/dashboard/stats', methods=['GET'])
def stats():
    return jsonify(to_json(deps.dashboard_service().stats(current_caller())))


@bp.route('/dashboard/upcoming', methods=['GET'])
def upcoming():
    limit = max(1, min(request.args.get('limit', 10, type=int), 50))
    return jsonify(to_json(deps.dashboard_service().upcoming(current_caller(), limit=limit)))


@bp.route('/dashboard/recent', methods=['GET'])
def recent():
    limit = max(1, min(request.args.get('limit', 5, type=int), 50))
    return jsonify(to_json(deps.dashboard_service().recent(current_caller(), limit=limit)))
