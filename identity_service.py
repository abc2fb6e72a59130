"""identity_service.py

Who is making the request, and may they use the back office?

Actors:
 - Anonymous: no user_id in the session (public endpoints only)
 - FixedAdmin: session user_id == "admin" with is_admin set; granted only by the three-secret login
 - AccountActor: a registered account; admin when it holds an `admin` role assignment
 - LibraryCardHolder: session user_id "card-<applicationId>" with is_library_card set

`can_admin` is computed once, when the actor is resolved for a request. Role assignments are
read from the database on every resolve, so grants and revocations apply to the next request
of an existing session.

Also holds the account operations that belong to the same seam: login, registration,
profile updates, role grants and account deletion.
"""

import re
from werkzeug.security import generate_password_hash, check_password_hash
from sqlalchemy import func
from models import db, User, Profile, UserRole, LibraryCardApplication
from errors import NotAuthenticated, Forbidden, NotFound, Conflict, InvalidInput, text_value
from config import (
    ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_SECRET_KEY, ADMIN_DISPLAY_NAME,
    SEED_ADMIN_ID, SEED_ADMIN_EMAIL, SEED_ADMIN_PASSWORD, PROTECTED_ACCOUNT_IDS,
)

FIXED_ADMIN_ID = 'admin'
CARD_SESSION_PREFIX = 'card-'
ROLES = ('admin', 'moderator', 'user')
EMAIL_RE = re.compile(r"^[\w\.\+-]+@[\w\.-]+\.\w+$")


def hash_password(password):
    """Salted one-way hash of `password`."""
    return generate_password_hash(password)


def verify_password(stored_password, provided_password):
    try:
        return check_password_hash(stored_password, provided_password)
    except (TypeError, ValueError):
        return False


class Actor:
    kind = None
    is_authenticated = True

    def __init__(self, actor_id=None, can_admin=False):
        self.id = actor_id
        self.can_admin = can_admin

    @property
    def session_user_id(self):
        return self.id

    def __repr__(self):
        return f'<{type(self).__name__} {self.id!r} admin={self.can_admin}>'


class Anonymous(Actor):
    kind = 'anonymous'
    is_authenticated = False


class FixedAdmin(Actor):
    kind = 'fixed_admin'

    def __init__(self):
        super().__init__(FIXED_ADMIN_ID, can_admin=True)


class AccountActor(Actor):
    kind = 'account'

    def __init__(self, user, can_admin=False):
        super().__init__(user.id, can_admin=can_admin)
        self.user = user


class LibraryCardHolder(Actor):
    kind = 'library_card'

    def __init__(self, application):
        super().__init__(application.id, can_admin=False)
        self.application = application

    @property
    def session_user_id(self):
        return f'{CARD_SESSION_PREFIX}{self.id}'


def has_role(user_id, role):
    return UserRole.query.filter_by(user_id=user_id, role=role).first() is not None


def get_user_by_email(email):
    if not email:
        return None
    return User.query.filter(func.lower(User.email) == email.strip().lower()).first()


def resolve_actor(session):
    """Resolve the session into an Actor.

    Raises NotAuthenticated when the session has no user_id or points at an account or
    library card application that no longer exists.
    """
    user_id = session.get('user_id')
    if not user_id:
        raise NotAuthenticated()

    user_id = str(user_id)
    if user_id == FIXED_ADMIN_ID and session.get('is_admin'):
        return FixedAdmin()

    if session.get('is_library_card'):
        if not user_id.startswith(CARD_SESSION_PREFIX):
            raise NotAuthenticated('Library card not found')
        application_id = user_id[len(CARD_SESSION_PREFIX):].strip()
        application = db.session.get(LibraryCardApplication, application_id)
        if not application:
            raise NotAuthenticated('Library card not found')
        return LibraryCardHolder(application)

    user = db.session.get(User, user_id)
    if not user:
        raise NotAuthenticated('User not found')
    return AccountActor(user, can_admin=has_role(user.id, 'admin'))


def load_actor(session):
    """Like resolve_actor, but an empty session yields Anonymous instead of an error."""
    if not session.get('user_id'):
        return Anonymous()
    return resolve_actor(session)


def require_admin(actor):
    if not actor.can_admin:
        raise Forbidden()


def session_payload(actor):
    """Session keys written at login for `actor`."""
    return {
        'user_id': actor.session_user_id,
        'is_admin': isinstance(actor, FixedAdmin),
        'is_library_card': isinstance(actor, LibraryCardHolder),
    }


def _is_fixed_admin_login(email, password, secret_key):
    return email == ADMIN_EMAIL and password == ADMIN_PASSWORD and secret_key == ADMIN_SECRET_KEY


def authenticate(email=None, password=None, secret_key=None, library_card_id=None):
    """Login path. Returns the authenticated Actor or raises NotAuthenticated.

    1. secret key given and all three admin secrets match -> FixedAdmin
       (any mismatch falls through to the checks below, it never rejects on its own)
    2. library card id given -> approved application with that card number
    3. otherwise -> account email + password
    """
    if secret_key and _is_fixed_admin_login(email, password, secret_key):
        return FixedAdmin()

    if library_card_id:
        application = LibraryCardApplication.query.filter(
            func.lower(LibraryCardApplication.card_number) == str(library_card_id).strip().lower()
        ).first()
        if not application:
            raise NotAuthenticated('Invalid library card ID')
        status = (application.status or 'pending').lower()
        if status == 'pending':
            raise NotAuthenticated(
                'Your library card application is under review. '
                'Please wait for approval from the library.'
            )
        if status == 'rejected':
            raise NotAuthenticated('Your library card application was rejected.')
        if status != 'approved':
            raise NotAuthenticated('Library card is not active.')
        return LibraryCardHolder(application)

    user = get_user_by_email(email)
    if not user or not password or not verify_password(user.password_hash, password):
        raise NotAuthenticated('Invalid credentials')
    return AccountActor(user, can_admin=has_role(user.id, 'admin'))


def describe_actor(actor):
    """Payload of GET /api/auth/me."""
    if isinstance(actor, FixedAdmin):
        return {'user': {'id': FIXED_ADMIN_ID, 'email': ADMIN_EMAIL}, 'roles': ['admin'], 'isAdmin': True}

    if isinstance(actor, LibraryCardHolder):
        application = actor.application
        return {
            'user': {
                'id': application.id,
                'email': application.email,
                'name': application.full_name,
                'cardNumber': application.card_number,
            },
            'isLibraryCard': True,
            'isAdmin': False,
        }

    user = actor.user
    return {
        'user': {'id': user.id, 'email': user.email},
        'profile': user.profile.to_dict() if user.profile else None,
        'roles': [r.role for r in user.roles],
        'isAdmin': actor.can_admin,
    }


def register_account(data):
    """Create an account with its profile and the default `user` role."""
    email = text_value(data, 'email')
    password = text_value(data, 'password', strip=False)
    full_name = text_value(data, 'fullName')

    if not email or not password or not full_name:
        raise InvalidInput('Missing required fields')
    if not EMAIL_RE.match(email):
        raise InvalidInput('Invalid email address')
    if len(password) < 6:
        raise InvalidInput('Password must be at least 6 characters')
    if get_user_by_email(email):
        raise Conflict('Email already registered')

    student_class = text_value(data, 'studentClass') or None
    user = User(
        email=email,
        password_hash=hash_password(password),
        account_type='student' if student_class else 'user',
    )
    user.profile = Profile(
        full_name=full_name,
        phone=text_value(data, 'phone') or None,
        roll_number=text_value(data, 'rollNumber') or None,
        department=text_value(data, 'department') or None,
        student_class=student_class,
    )
    user.roles.append(UserRole(role='user'))
    db.session.add(user)
    db.session.commit()
    return user


PROFILE_FIELDS = {
    'fullName': 'full_name',
    'phone': 'phone',
    'rollNumber': 'roll_number',
    'department': 'department',
    'studentClass': 'student_class',
}


def update_profile(user_id, data):
    """Update the caller's profile. Returns None when the account has no profile."""
    profile = Profile.query.filter_by(user_id=user_id).first()
    if not profile:
        return None
    for key, attr in PROFILE_FIELDS.items():
        if key in data:
            setattr(profile, attr, text_value(data, key) or None)
    if not profile.full_name:
        raise InvalidInput('Full name is required')
    db.session.commit()
    return profile


def delete_account(user_id):
    """Delete an account with its profile and role assignments.

    The seed admin account and the fixed admin id can never be deleted.
    """
    user_id = str(user_id).strip()
    if user_id in PROTECTED_ACCOUNT_IDS:
        raise Forbidden('Cannot delete the primary admin account')
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound('User not found')
    db.session.delete(user)
    db.session.commit()


def grant_role(user_id, role):
    if role not in ROLES:
        raise InvalidInput('Invalid role')
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound('User not found')
    existing = UserRole.query.filter_by(user_id=user.id, role=role).first()
    if existing:
        return existing
    assignment = UserRole(user_id=user.id, role=role)
    db.session.add(assignment)
    db.session.commit()
    return assignment


def revoke_role(user_id, role):
    if role not in ROLES:
        raise InvalidInput('Invalid role')
    if str(user_id) == SEED_ADMIN_ID and role == 'admin':
        raise Forbidden('Cannot revoke admin from the primary admin account')
    assignment = UserRole.query.filter_by(user_id=user_id, role=role).first()
    if not assignment:
        raise NotFound('Role assignment not found')
    db.session.delete(assignment)
    db.session.commit()


def list_non_students():
    """Accounts that are not students, shaped like the admin user list expects."""
    users = User.query.filter(User.account_type != 'student').order_by(User.created_at.desc()).all()
    result = []
    for u in users:
        profile = u.profile
        result.append({
            'id': u.id,
            'userId': u.id,
            'name': (profile.full_name if profile else None) or u.email,
            'role': ADMIN_DISPLAY_NAME if u.account_type == 'admin' else u.account_type.capitalize(),
            'phone': (profile.phone if profile else None) or '-',
            'createdAt': u.created_at.isoformat() if u.created_at else None,
        })
    return result


def seed_admin_account():
    """Create the seed admin account (id "1") with an admin role if it does not exist yet."""
    if db.session.get(User, SEED_ADMIN_ID):
        return None
    user = User(
        id=SEED_ADMIN_ID,
        email=SEED_ADMIN_EMAIL,
        password_hash=hash_password(SEED_ADMIN_PASSWORD),
        account_type='admin',
    )
    user.profile = Profile(full_name=ADMIN_DISPLAY_NAME)
    user.roles.append(UserRole(role='admin'))
    db.session.add(user)
    db.session.commit()
    return user
