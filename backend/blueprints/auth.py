"""Authentication blueprint: registration, tokens, users and permissions."""
from flask import Blueprint, request, jsonify, g, current_app
from shared.enums import UserRole
from shared.permissions import role_display_name
from shared.schemas import UserRegister, UserLogin, UserUpdate
from shared.validation import PermissionDenied, NotFound, validate_choice
from .. import deps
from ..utils import api_error, parse_body, current_caller, to_json

bp = Blueprint('auth', __name__, url_prefix='/api')

PUBLIC_PATHS = ('/api/auth/login', '/api/auth/register')


def _bearer_token():
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[len('Bearer '):].strip()
    return None


def _user_json(user):
    data = to_json(user)
    data['role_display_name'] = role_display_name(user.role)
    return data


@bp.route('/auth/register', methods=['POST'])
def register():
    """Register a new user; the first one becomes an approved admin."""
    payload = parse_body(UserRegister)
    user = deps.user_directory().register(payload, current_app.config.get('ALLOWED_EMAIL_DOMAINS') or [])
    return jsonify({'message': 'User registered successfully', 'user': _user_json(user)}), 201


@bp.route('/auth/login', methods=['POST'])
def login():
    """Login user and return token."""
    payload = parse_body(UserLogin)
    directory = deps.user_directory()
    user = directory.authenticate(payload.email, payload.password)
    if user is None:
        return api_error('Invalid email or password', 401)
    token = directory.issue_token(user.id)
    return jsonify({'token': token, 'user': _user_json(user)})


@bp.route('/auth/logout', methods=['POST'])
def logout():
    """Logout user by invalidating token."""
    token = _bearer_token()
    if not token or not deps.user_directory().revoke_token(token):
        return api_error('Invalid token', 400)
    return jsonify({'message': 'Logged out successfully'})


@bp.route('/auth/me', methods=['GET'])
def me():
    return jsonify(_user_json(g.user))


@bp.route('/permissions', methods=['GET'])
def permissions():
    """Capabilities of the current user."""
    caller = current_caller()
    policy = deps.policy()
    return jsonify({
        'role': caller.role,
        'role_display_name': role_display_name(caller.role),
        'permissions': policy.permissions(caller.role).model_dump(),
        'assignable_roles': [r.value for r in policy.assignable_roles(caller.role)],
    })


@bp.route('/users', methods=['GET'])
def list_users():
    caller = current_caller()
    policy = deps.policy()
    if not (policy.has_permission(caller, 'can_manage_users') or policy.has_permission(caller, 'can_assign_inspections')):
        raise PermissionDenied('Not allowed to list users')
    role = request.args.get('role')
    if role:
        validate_choice(role, 'role', [r.value for r in UserRole])
    users = deps.user_directory().list_by_role(role=role, status=request.args.get('status'))
    return jsonify([_user_json(u) for u in users])


@bp.route('/users/<user_id>', methods=['PUT'])
def update_user(user_id):
    """Approve/reject a user or change their role.

    A caller may only grant roles it is allowed to assign work to, and only
    touch users whose current role is in that set.
    """
    caller = current_caller()
    policy = deps.policy()
    policy.require(caller, 'can_manage_users')
    payload = parse_body(UserUpdate)

    directory = deps.user_directory()
    target = directory.get(user_id)
    if target is None:
        raise NotFound(f"User {user_id} not found")
    if target.id == caller.id and (payload.role or payload.status):
        raise PermissionDenied('Users cannot change their own role or status')

    allowed = [r.value for r in policy.assignable_roles(caller.role)]
    if target.role not in allowed or (payload.role and payload.role not in allowed):
        raise PermissionDenied(f"Role '{caller.role}' cannot manage this user")

    return jsonify(_user_json(directory.update_user(user_id, payload)))


def init_auth(app):
    """Require a bearer token for every /api route except login/register."""
    @app.before_request
    def check_auth():
        if not request.path.startswith('/api') or request.path.startswith(PUBLIC_PATHS):
            return

        user = deps.user_directory().user_for_token(_bearer_token())
        if user is None:
            return jsonify({'error': 'Authentication required'}), 401
        g.user = user
