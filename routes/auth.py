"""routes/auth.py

Authentication routes:
 - register: create an account (email must not be registered yet) and log it in
 - login: fixed admin (email + password + secret key), library card number, or account email + password
 - logout: clear the session
 - me: who is logged in

Note: a failed fixed-admin check never rejects on its own; the request falls through to the
card and account checks (see identity_service.authenticate).
"""

import logging
from flask import Blueprint, session, jsonify
from identity_service import AccountActor, register_account, authenticate, session_payload, describe_actor
from decorators import login_required, current_actor, json_body
from errors import text_value

logger = logging.getLogger(__name__)

auth = Blueprint('auth', __name__)


def _start_session(actor):
    session.clear()
    session.permanent = True
    session.update(session_payload(actor))


@auth.route('/register', methods=['POST'])
def register():
    data = json_body()
    user = register_account(data)
    _start_session(AccountActor(user))
    logger.info("Registered account %s", user.id)
    return jsonify({'user': {'id': user.id, 'email': user.email}}), 201


@auth.route('/login', methods=['POST'])
def login():
    """POST JSON: email, password, and optionally secretKey or libraryCardId."""
    data = json_body()
    actor = authenticate(
        email=text_value(data, 'email'),
        password=text_value(data, 'password', strip=False),
        secret_key=text_value(data, 'secretKey', strip=False),
        library_card_id=text_value(data, 'libraryCardId'),
    )
    _start_session(actor)
    logger.info("Login: %r", actor)
    return jsonify(describe_actor(actor))


@auth.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'success': True})


@auth.route('/me')
@login_required
def me():
    return jsonify(describe_actor(current_actor()))
