"""routes/admin.py

Back-office routes (admin only):
 - users: students (from approved cards) and non-student accounts
 - delete_user: delete an account (the seed admin "1" and "admin" are protected)
 - grant_role / revoke_role: role assignments
 - library_cards: every card application
 - borrowed_books / delete_borrowed_book: loan records
 - stats: dashboard counters

Note: every route here uses `@admin_required`.
"""

import logging
from flask import Blueprint, jsonify
from models import User, Student, Donation, LibraryCardApplication
import identity_service
import card_service
import borrow_service
from decorators import admin_required, json_body
from errors import text_value

logger = logging.getLogger(__name__)

admin = Blueprint('admin', __name__)


@admin.route('/users')
@admin_required
def users():
    return jsonify({
        'students': [s.to_dict() for s in card_service.list_students()],
        'nonStudents': identity_service.list_non_students(),
    })


@admin.route('/users/<user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    identity_service.delete_account(user_id)
    logger.info("Deleted account %s", user_id)
    return jsonify({'success': True})


@admin.route('/users/<user_id>/roles', methods=['POST'])
@admin_required
def grant_role(user_id):
    """POST JSON: role (admin / moderator / user)."""
    data = json_body()
    assignment = identity_service.grant_role(user_id, text_value(data, 'role').lower())
    logger.info("Granted %s to %s", assignment.role, user_id)
    return jsonify(assignment.to_dict()), 201


@admin.route('/users/<user_id>/roles/<role>', methods=['DELETE'])
@admin_required
def revoke_role(user_id, role):
    identity_service.revoke_role(user_id, role.strip().lower())
    logger.info("Revoked %s from %s", role, user_id)
    return jsonify({'success': True})


@admin.route('/library-cards')
@admin_required
def library_cards():
    return jsonify([a.to_dict() for a in card_service.list_applications()])


@admin.route('/borrowed-books')
@admin_required
def borrowed_books():
    return jsonify([r.to_dict() for r in borrow_service.list_borrows()])


@admin.route('/borrowed-books/<borrow_id>', methods=['DELETE'])
@admin_required
def delete_borrowed_book(borrow_id):
    borrow_service.delete_borrow(borrow_id)
    return jsonify({'success': True})


@admin.route('/stats')
@admin_required
def stats():
    students = Student.query.count()
    non_students = User.query.filter(User.account_type != 'student').count()
    result = {
        'totalUsers': students + non_students,
        'libraryCards': LibraryCardApplication.query.count(),
        'donations': Donation.query.count(),
    }
    result.update(borrow_service.borrow_stats())
    return jsonify(result)
