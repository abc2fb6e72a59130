"""routes/user.py

Routes for the logged-in account:
 - profile (GET): the caller's profile
 - profile (PUT): update fullName, phone, rollNumber, department, studentClass

Note: only registered accounts have a profile. Library card holders and the fixed admin get 404.
"""

from flask import Blueprint, jsonify
from identity_service import AccountActor, update_profile
from decorators import login_required, current_actor, json_body
from errors import NotFound

user = Blueprint('user', __name__)


def _account_profile():
    actor = current_actor()
    if not isinstance(actor, AccountActor) or not actor.user.profile:
        raise NotFound('Profile not found')
    return actor.user.profile


@user.route('/profile', methods=['GET'])
@login_required
def profile():
    return jsonify(_account_profile().to_dict())


@user.route('/profile', methods=['PUT'])
@login_required
def update():
    profile = _account_profile()
    data = json_body()
    profile = update_profile(profile.user_id, data)
    return jsonify(profile.to_dict())
