"""routes/content.py

Admin management of uploaded content (every route uses `@admin_required`):
 - notes: list all (active and inactive), upload a PDF, update, toggle active/inactive, delete
 - rare books: list all, upload PDF + cover image, toggle, delete
 - events: create with images, update, delete

Uploads are multipart forms; files are stored by upload_service and removed again when the
record is deleted.
"""

import logging
from datetime import datetime
from flask import Blueprint, request, jsonify
from models import db, Note, RareBook, Event
from upload_service import save_upload, remove_upload
from decorators import admin_required, json_body
from errors import NotFound, InvalidInput, text_value

logger = logging.getLogger(__name__)

content = Blueprint('content', __name__)

NOTE_FIELDS = {
    'class': 'student_class',
    'subject': 'subject',
    'title': 'title',
    'description': 'description',
}


def _form_data():
    if request.form:
        return request.form.to_dict()
    return json_body()


def _required(data, keys):
    values = {key: text_value(data, key) for key in keys}
    missing = [key for key, value in values.items() if not value]
    if missing:
        raise InvalidInput(f"Missing required fields: {', '.join(missing)}")
    return values


def _toggle(record):
    record.status = 'inactive' if record.status == 'active' else 'active'
    db.session.commit()
    return record


def _get_or_404(model, record_id, label):
    record = db.session.get(model, record_id)
    if not record:
        raise NotFound(f'{label} not found')
    return record


def _parse_event_date(value):
    if not value:
        return None
    try:
        return datetime.strptime(value[:10], '%Y-%m-%d').date()
    except ValueError:
        raise InvalidInput('Invalid event date, expected YYYY-MM-DD')


# Notes

@content.route('/notes', methods=['GET'])
@admin_required
def notes():
    return jsonify([n.to_dict() for n in Note.query.order_by(Note.created_at.desc()).all()])


@content.route('/notes', methods=['POST'])
@admin_required
def upload_note():
    """Multipart form: class, subject, title, description, pdf (file)."""
    values = _required(request.form, NOTE_FIELDS)
    pdf_path = save_upload(request.files.get('pdf'), 'document')
    note = Note(pdf_path=pdf_path, status='active', **{NOTE_FIELDS[k]: v for k, v in values.items()})
    db.session.add(note)
    db.session.commit()
    logger.info("Uploaded note %s (%s / %s)", note.id, note.student_class, note.subject)
    return jsonify(note.to_dict()), 201


@content.route('/notes/<note_id>', methods=['PATCH'])
@admin_required
def update_note(note_id):
    note = _get_or_404(Note, note_id, 'Note')
    data = _form_data()
    for key, attr in NOTE_FIELDS.items():
        if key in data:
            value = text_value(data, key)
            if not value:
                raise InvalidInput(f'{key} cannot be empty')
            setattr(note, attr, value)

    pdf = request.files.get('pdf')
    if pdf and pdf.filename:
        old_path = note.pdf_path
        note.pdf_path = save_upload(pdf, 'document')
        remove_upload(old_path)
    db.session.commit()
    return jsonify(note.to_dict())


@content.route('/notes/<note_id>/toggle', methods=['PATCH'])
@admin_required
def toggle_note(note_id):
    return jsonify(_toggle(_get_or_404(Note, note_id, 'Note')).to_dict())


@content.route('/notes/<note_id>', methods=['DELETE'])
@admin_required
def delete_note(note_id):
    note = _get_or_404(Note, note_id, 'Note')
    pdf_path = note.pdf_path
    db.session.delete(note)
    db.session.commit()
    remove_upload(pdf_path)
    return jsonify({'success': True})


# Rare books

@content.route('/rare-books', methods=['GET'])
@admin_required
def rare_books():
    return jsonify([b.to_dict() for b in RareBook.query.order_by(RareBook.created_at.desc()).all()])


@content.route('/rare-books', methods=['POST'])
@admin_required
def upload_rare_book():
    """Multipart form: title, description, optional category, pdf (file), cover (image file)."""
    values = _required(request.form, ('title', 'description'))
    pdf_path = save_upload(request.files.get('pdf'), 'document')
    try:
        cover_path = save_upload(request.files.get('cover'), 'image')
    except InvalidInput:
        remove_upload(pdf_path)
        raise

    rare_book = RareBook(
        title=values['title'],
        description=values['description'],
        category=(request.form.get('category') or '').strip() or 'General',
        pdf_path=pdf_path,
        cover_image=cover_path,
        status='active',
    )
    db.session.add(rare_book)
    db.session.commit()
    logger.info("Uploaded rare book %s", rare_book.id)
    return jsonify(rare_book.to_dict()), 201


@content.route('/rare-books/<rare_book_id>/toggle', methods=['PATCH'])
@admin_required
def toggle_rare_book(rare_book_id):
    return jsonify(_toggle(_get_or_404(RareBook, rare_book_id, 'Rare book')).to_dict())


@content.route('/rare-books/<rare_book_id>', methods=['DELETE'])
@admin_required
def delete_rare_book(rare_book_id):
    rare_book = _get_or_404(RareBook, rare_book_id, 'Rare book')
    paths = (rare_book.pdf_path, rare_book.cover_image)
    db.session.delete(rare_book)
    db.session.commit()
    for path in paths:
        remove_upload(path)
    return jsonify({'success': True})


# Events

@content.route('/events', methods=['POST'])
@admin_required
def create_event():
    """Multipart form: title, description, optional date (YYYY-MM-DD), images (files)."""
    data = _form_data()
    values = _required(data, ('title', 'description'))
    images = [save_upload(f, 'image') for f in request.files.getlist('images') if f and f.filename]
    event = Event(
        title=values['title'],
        description=values['description'],
        event_date=_parse_event_date(text_value(data, 'date')),
        images=images,
    )
    db.session.add(event)
    db.session.commit()
    return jsonify(event.to_dict()), 201


@content.route('/events/<event_id>', methods=['PATCH'])
@admin_required
def update_event(event_id):
    """New image files are appended to the event's images."""
    event = _get_or_404(Event, event_id, 'Event')
    data = _form_data()
    for key in ('title', 'description'):
        if key in data:
            value = text_value(data, key)
            if not value:
                raise InvalidInput(f'{key} cannot be empty')
            setattr(event, key, value)
    if 'date' in data:
        event.event_date = _parse_event_date(text_value(data, 'date'))

    new_images = [save_upload(f, 'image') for f in request.files.getlist('images') if f and f.filename]
    if new_images:
        event.images = list(event.images or []) + new_images
    db.session.commit()
    return jsonify(event.to_dict())


@content.route('/events/<event_id>', methods=['DELETE'])
@admin_required
def delete_event(event_id):
    event = _get_or_404(Event, event_id, 'Event')
    images = list(event.images or [])
    db.session.delete(event)
    db.session.commit()
    for path in images:
        remove_upload(path)
    return jsonify({'success': True})
