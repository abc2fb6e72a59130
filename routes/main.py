"""routes/main.py

Public routes, plus the small admin CRUD that sits next to them:
 - contact messages: anyone may send one (a confirmation email is attempted); admins list, mark seen, delete
 - donations: anyone may record one; admins list and delete
 - notes / notes_filter: active class notes (filter needs both class and subject)
 - rare_books / stream_rare_book: active rare books and their PDF, streamed inline without caching
 - events: newest first

Note: the stream route only serves active rare books; an inactive one is reported as not found.
"""

import os
import logging
from decimal import Decimal, InvalidOperation
from flask import Blueprint, request, jsonify, send_file
from models import db, ContactMessage, Donation, Note, RareBook, Event
from email_service import send_contact_confirmation_email
from upload_service import resolve_upload
from decorators import admin_required, json_body
from errors import NotFound, InvalidInput, text_value

logger = logging.getLogger(__name__)

main = Blueprint('main', __name__)


@main.route('/contact-messages', methods=['GET'])
@admin_required
def contact_messages():
    messages = ContactMessage.query.order_by(ContactMessage.created_at.desc()).all()
    return jsonify([m.to_dict() for m in messages])


@main.route('/contact-messages', methods=['POST'])
def send_contact_message():
    data = json_body()
    fields = {key: text_value(data, key) for key in ('name', 'email', 'subject', 'message')}
    missing = [key for key, value in fields.items() if not value]
    if missing:
        raise InvalidInput(f"Missing required fields: {', '.join(missing)}")

    message = ContactMessage(**fields)
    db.session.add(message)
    db.session.commit()

    success, info = send_contact_confirmation_email(
        fields['email'], fields['name'], fields['subject'], fields['message']
    )
    if not success:
        logger.info("Contact message %s stored without confirmation email: %s", message.id, info)
    return jsonify(message.to_dict()), 201


@main.route('/contact-messages/<message_id>/seen', methods=['PATCH'])
@admin_required
def mark_seen(message_id):
    message = db.session.get(ContactMessage, message_id)
    if not message:
        raise NotFound('Message not found')
    message.is_seen = True
    db.session.commit()
    return jsonify(message.to_dict())


@main.route('/contact-messages/<message_id>', methods=['DELETE'])
@admin_required
def delete_contact_message(message_id):
    message = db.session.get(ContactMessage, message_id)
    if not message:
        raise NotFound('Message not found')
    db.session.delete(message)
    db.session.commit()
    return jsonify({'success': True})


@main.route('/donations', methods=['GET'])
@admin_required
def donations():
    return jsonify([d.to_dict() for d in Donation.query.order_by(Donation.created_at.desc()).all()])


@main.route('/donations', methods=['POST'])
def donate():
    """POST JSON: amount, method, optional name / email / message."""
    data = json_body()
    method = text_value(data, 'method')
    try:
        amount = Decimal(str(data.get('amount')))
    except (InvalidOperation, ValueError):
        raise InvalidInput('Amount must be a number')
    if not amount.is_finite() or amount <= 0:
        raise InvalidInput('Amount must be greater than zero')
    if not method:
        raise InvalidInput('Payment method is required')

    donation = Donation(
        amount=amount,
        method=method,
        name=text_value(data, 'name') or None,
        email=text_value(data, 'email') or None,
        message=text_value(data, 'message') or None,
        status='received',
    )
    db.session.add(donation)
    db.session.commit()
    return jsonify(donation.to_dict()), 201


@main.route('/donations/<donation_id>', methods=['DELETE'])
@admin_required
def delete_donation(donation_id):
    donation = db.session.get(Donation, donation_id)
    if not donation:
        raise NotFound('Donation not found')
    db.session.delete(donation)
    db.session.commit()
    return jsonify({'success': True})


@main.route('/notes')
def notes():
    active = Note.query.filter_by(status='active').order_by(Note.created_at.desc()).all()
    return jsonify([n.to_dict() for n in active])


@main.route('/notes/filter')
def notes_filter():
    """Query params: class, subject (both required)."""
    student_class = (request.args.get('class') or '').strip()
    subject = (request.args.get('subject') or '').strip()
    if not student_class or not subject:
        raise InvalidInput('Class and subject are required')
    filtered = Note.query.filter_by(status='active', student_class=student_class, subject=subject)\
        .order_by(Note.created_at.desc()).all()
    return jsonify([n.to_dict() for n in filtered])


@main.route('/rare-books')
def rare_books():
    active = RareBook.query.filter_by(status='active').order_by(RareBook.created_at.desc()).all()
    return jsonify([b.to_dict() for b in active])


@main.route('/rare-books/stream/<rare_book_id>')
def stream_rare_book(rare_book_id):
    rare_book = db.session.get(RareBook, rare_book_id)
    if not rare_book or rare_book.status != 'active':
        raise NotFound('Rare book not found')

    path = resolve_upload(rare_book.pdf_path)
    if not path or not os.path.isfile(path):
        raise NotFound('PDF file not found')

    response = send_file(path, mimetype='application/pdf', download_name='rare-book.pdf', conditional=False)
    response.headers['Content-Disposition'] = 'inline; filename="rare-book.pdf"'
    response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, private'
    response.headers['Pragma'] = 'no-cache'
    response.headers['Expires'] = '0'
    return response


@main.route('/events')
def events():
    return jsonify([e.to_dict() for e in Event.query.order_by(Event.created_at.desc()).all()])
