"""decorators.py

Shared decorators for the API routes.

login_required: resolves the session into an Actor and stores it in `g.actor`.
 - no session or a stale one: NotAuthenticated (401)
optional_actor: public routes that only use the caller when one is logged in; a stale session is Anonymous.
admin_required: like login_required, then the actor must be able to use the back office.
 - otherwise: Forbidden (403)

Errors are raised, not returned; the handler registered in app.py turns them into JSON.
"""

from functools import wraps
from flask import session, g, request
from identity_service import Anonymous, resolve_actor, load_actor, require_admin
from errors import InvalidInput, NotAuthenticated


def current_actor():
    """Actor of the current request (Anonymous when nobody is logged in)."""
    if 'actor' not in g:
        g.actor = load_actor(session)
    return g.actor


def optional_actor():
    """current_actor for public routes: a stale session counts as Anonymous."""
    try:
        return current_actor()
    except NotAuthenticated:
        g.actor = Anonymous()
        return g.actor


def json_body():
    """JSON object of the request body ({} when there is none). Raises InvalidInput for other JSON."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInput('Request body must be a JSON object')
    return data


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.actor = resolve_actor(session)
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Protect a route for admins only.

    Behaviour:
    - no session['user_id'] -> NotAuthenticated
    - logged in but not an admin (fixed admin or `admin` role) -> Forbidden
    - otherwise -> call the view function
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.actor = resolve_actor(session)
        require_admin(g.actor)
        return f(*args, **kwargs)
    return decorated_function
