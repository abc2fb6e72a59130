"""routes/card.py

Library card applications:
 - applications (GET): every application for admins, otherwise the caller's own
 - apply (POST): anyone may apply; a logged-in account is linked to the application
   (a session whose account no longer exists applies anonymously)
 - set_status / delete_application: admin decision and cleanup
"""

from flask import Blueprint, jsonify
import card_service
from identity_service import AccountActor
from decorators import login_required, admin_required, current_actor, optional_actor, json_body

card = Blueprint('card', __name__)


@card.route('/library-card-applications', methods=['GET'])
@login_required
def applications():
    return jsonify([a.to_dict() for a in card_service.applications_for_actor(current_actor())])


@card.route('/library-card-applications', methods=['POST'])
def apply():
    data = json_body()
    actor = optional_actor()
    user_id = actor.id if isinstance(actor, AccountActor) else None
    application = card_service.submit_application(data, user_id=user_id)
    return jsonify(application.to_dict()), 201


@card.route('/library-card-applications/<application_id>/status', methods=['PATCH'])
@admin_required
def set_status(application_id):
    """PATCH JSON: status (pending / approved / rejected)."""
    data = json_body()
    application = card_service.set_status(application_id, data.get('status'))
    return jsonify(application.to_dict())


@card.route('/library-card-applications/<application_id>', methods=['DELETE'])
@admin_required
def delete_application(application_id):
    card_service.delete_application(application_id)
    return jsonify({'success': True})
