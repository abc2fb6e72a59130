"""routes/book.py

Routes for the catalog and loans:
 - books: public catalog
 - admin_books / create / update / delete: inventory management (admin)
 - borrows (GET): the caller's loans, every loan for admins
 - borrows (POST): borrow a copy
 - return_book / set_status / delete_borrow: loan handling (admin)

Note: copy counts are only changed inside borrow_service; these views never touch them directly.
Book create/update accept JSON or a multipart form with an optional `bookImage` file.
"""

from flask import Blueprint, request, jsonify
import borrow_service
from upload_service import save_upload
from decorators import login_required, admin_required, current_actor, json_body
from errors import text_value

book = Blueprint('book', __name__)


def _book_payload():
    """Form fields + uploaded image path, or the JSON body."""
    if request.files or request.form:
        data = request.form.to_dict()
        image = request.files.get('bookImage')
        return data, (save_upload(image, 'image') if image and image.filename else None)
    return json_body(), None


@book.route('/books')
def books():
    return jsonify([b.to_dict() for b in borrow_service.list_books()])


@book.route('/admin/books', methods=['GET'])
@admin_required
def admin_books():
    return jsonify([b.to_dict() for b in borrow_service.list_books()])


@book.route('/admin/books', methods=['POST'])
@admin_required
def create_book():
    data, image_path = _book_payload()
    new_book = borrow_service.create_book(data, book_image=image_path)
    return jsonify(new_book.to_dict()), 201


@book.route('/admin/books/<book_id>', methods=['PATCH'])
@admin_required
def update_book(book_id):
    data, image_path = _book_payload()
    updated = borrow_service.update_book(book_id, data, book_image=image_path)
    return jsonify(updated.to_dict())


@book.route('/admin/books/<book_id>', methods=['DELETE'])
@admin_required
def delete_book(book_id):
    borrow_service.delete_book(book_id)
    return jsonify({'success': True})


@book.route('/book-borrows', methods=['GET'])
@login_required
def borrows():
    return jsonify([r.to_dict() for r in borrow_service.borrows_for_actor(current_actor())])


@book.route('/book-borrows', methods=['POST'])
@login_required
def borrow():
    """POST JSON: bookId, optional bookTitle."""
    data = json_body()
    record = borrow_service.borrow(current_actor(), data.get('bookId'), text_value(data, 'bookTitle') or None)
    return jsonify(record.to_dict()), 201


@book.route('/book-borrows/<borrow_id>/return', methods=['PATCH'])
@admin_required
def return_book(borrow_id):
    data = json_body()
    record = borrow_service.mark_returned(borrow_id, data.get('actualReturnDate'))
    return jsonify(record.to_dict())


@book.route('/book-borrows/<borrow_id>/status', methods=['PATCH'])
@admin_required
def set_status(borrow_id):
    """PATCH JSON: status (borrowed / returned), optional returnDate."""
    data = json_body()
    record = borrow_service.update_status(borrow_id, data.get('status'), data.get('returnDate'))
    return jsonify(record.to_dict())


@book.route('/book-borrows/<borrow_id>', methods=['DELETE'])
@admin_required
def delete_borrow(borrow_id):
    borrow_service.delete_borrow(borrow_id)
    return jsonify({'success': True})
