"""User directory: accounts, roles, approval status and API tokens."""
import secrets
from flask import g, has_request_context
from werkzeug.security import generate_password_hash, check_password_hash
from shared.enums import UserRole, UserStatus
from shared.models import User, AppConfig, now
from shared.schemas import UserProfile
from shared.utils import generate_id
from shared.validation import ValidationError, ConflictError, NotFound, PermissionDenied
from .base import BaseRepository, to_storage_time

TOKEN_CATEGORY = 'user_token'


def _token_key(token):
    return f'token_{token}'


class UserDirectory(BaseRepository):
    """Users and bearer tokens.

    Tokens live in ``app_config`` rows (category ``user_token``), keyed by
    ``token_<token>`` with the user id as the value.
    """

    def _to_schema(self, row):
        return UserProfile(
            id=row.id,
            email=row.email,
            full_name=row.full_name or '',
            role=row.role,
            status=row.status,
            created_at=row.created_at,
        )

    def current_user(self):
        """User authenticated for the current request, or None."""
        if not has_request_context():
            return None
        return getattr(g, 'user', None)

    def get(self, user_id):
        with self._scope("user lookup") as session:
            row = session.get(User, user_id)
            return self._to_schema(row) if row else None

    def get_by_email(self, email):
        with self._scope("user lookup") as session:
            row = session.query(User).filter(User.email == email.strip().lower()).first()
            return self._to_schema(row) if row else None

    def list_by_role(self, role=None, status=None):
        """Users ordered by display name, optionally filtered by role and status."""
        with self._scope("user listing") as session:
            query = session.query(User)
            if role:
                query = query.filter(User.role == role)
            if status:
                query = query.filter(User.status == status)
            users = [self._to_schema(row) for row in query.all()]
        return sorted(users, key=lambda u: u.display_name.lower())

    def count(self):
        with self._scope("user count") as session:
            return session.query(User).count()

    def create_user(self, email, password, full_name='', role=UserRole.INSPECTOR, status=UserStatus.PENDING):
        """Insert a user with a hashed password.

        Raises:
            ConflictError: the email is already registered
        """
        email = email.strip().lower()
        with self._scope("user create") as session:
            if session.query(User).filter(User.email == email).first():
                raise ConflictError(f"User {email} already exists")
            row = User(
                id=generate_id(),
                email=email,
                full_name=full_name or '',
                password_hash=generate_password_hash(password),
                role=role,
                status=status,
            )
            session.add(row)
            session.flush()
            self.logger.info(f"Created user {email} with role {UserRole(role).value}")
            return self._to_schema(row)

    def register(self, data, allowed_domains=None):
        """Self-registration.

        The first account becomes an approved admin; later accounts are
        pending inspectors until a user manager approves them.

        Args:
            data (UserRegister): validated registration payload
            allowed_domains (list): email domains accepted, empty for any
        """
        domain = data.email.rsplit('@', 1)[-1]
        if allowed_domains and domain not in allowed_domains:
            raise ValidationError(f"Registration is limited to: {', '.join(allowed_domains)}")

        if self.count() == 0:
            role, status = UserRole.ADMIN, UserStatus.APPROVED
        else:
            role, status = UserRole.INSPECTOR, UserStatus.PENDING
        return self.create_user(data.email, data.password, data.full_name, role=role, status=status)

    def authenticate(self, email, password):
        """Return the user for valid credentials, None otherwise.

        Raises:
            PermissionDenied: credentials are valid but the account is not approved
        """
        with self._scope("user authentication") as session:
            row = session.query(User).filter(User.email == email.strip().lower()).first()
            if not row or not check_password_hash(row.password_hash, password):
                return None
            user = self._to_schema(row)
        if user.status != UserStatus.APPROVED:
            raise PermissionDenied(f"Account {user.email} is {user.status}")
        return user

    def issue_token(self, user_id):
        token = secrets.token_urlsafe(32)
        with self._scope("token issue") as session:
            session.add(AppConfig(
                key=_token_key(token),
                value=str(user_id),
                description=f'Token for user {user_id}',
                category=TOKEN_CATEGORY,
            ))
        return token

    def revoke_token(self, token):
        with self._scope("token revoke") as session:
            entry = session.query(AppConfig).filter_by(key=_token_key(token), category=TOKEN_CATEGORY).first()
            if entry is None:
                return False
            session.delete(entry)
            return True

    def user_for_token(self, token):
        """Approved user a bearer token belongs to, or None."""
        if not token:
            return None
        with self._scope("token lookup") as session:
            entry = session.query(AppConfig).filter_by(key=_token_key(token), category=TOKEN_CATEGORY).first()
            if entry is None:
                return None
            row = session.get(User, entry.value)
            if row is None or row.status != UserStatus.APPROVED:
                return None
            return self._to_schema(row)

    def update_user(self, user_id, update):
        """Apply a UserUpdate (name, role, status)."""
        with self._scope("user update") as session:
            row = session.get(User, user_id)
            if row is None:
                raise NotFound(f"User {user_id} not found")
            changes = update.model_dump(exclude_unset=True, exclude_none=True)
            for key, value in changes.items():
                setattr(row, key, value)
            row.updated_at = to_storage_time(now())
            session.flush()
            self.logger.info(f"Updated user {row.email}: {sorted(changes)}")
            return self._to_schema(row)
