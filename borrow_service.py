"""borrow_service.py

Book catalog and loans:
 - borrow: take one copy off the shelf and record the loan
 - mark_returned / update_status: close (or re-open) a loan and put the copy back
 - set_total_copies: change how many copies the library owns, keeping the ones on loan

Notes:
 - 0 <= available_copies <= total_copies holds between operations. Copy counts are changed
   with conditional UPDATE statements (decrement only while > 0, increment capped at the total)
   so two requests on the same book cannot push the counter outside that range; the CHECK
   constraint on `books` is the last line.
 - The loan row and the counter change are committed together or rolled back together.
"""

import logging
from datetime import datetime, timedelta
from sqlalchemy import case
from models import db, Book, BookBorrow
from errors import NotAuthenticated, NotFound, InvalidInput, InvalidStatus, NoCopiesAvailable, AlreadyReturned, text_value
from config import LOAN_PERIOD_DAYS, ADMIN_EMAIL, ADMIN_DISPLAY_NAME
from identity_service import FixedAdmin, LibraryCardHolder

logger = logging.getLogger(__name__)

BORROW_STATUSES = ('borrowed', 'returned')
NO_CARD = '-'


def _parse_datetime(value, field='date'):
    if value is None or value == '':
        return datetime.now()
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise InvalidInput(f'Invalid {field}')
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _parse_copies(value):
    if isinstance(value, bool):
        raise InvalidInput('Total copies must be a positive integer')
    try:
        copies = int(value)
    except (TypeError, ValueError):
        raise InvalidInput('Total copies must be a positive integer')
    if copies < 1 or str(value).strip() not in (str(copies), f'{copies}.0'):
        raise InvalidInput('Total copies must be a positive integer')
    return copies


def _take_copy(book_id):
    """Decrement available copies if one is on the shelf. Returns False when none was."""
    updated = Book.query.filter(Book.id == book_id, Book.available_copies > 0).update(
        {Book.available_copies: Book.available_copies - 1},
        synchronize_session=False
    )
    return updated == 1


def _put_back_copy(book_id):
    Book.query.filter(Book.id == book_id).update(
        {Book.available_copies: case(
            (Book.available_copies + 1 > Book.total_copies, Book.total_copies),
            else_=Book.available_copies + 1
        )},
        synchronize_session=False
    )


def borrower_snapshot(actor):
    """Borrower details copied onto the loan at borrow time."""
    if isinstance(actor, FixedAdmin):
        return {
            'borrower_name': ADMIN_DISPLAY_NAME,
            'borrower_phone': None,
            'borrower_email': ADMIN_EMAIL,
            'library_card_id': NO_CARD,
        }
    if isinstance(actor, LibraryCardHolder):
        application = actor.application
        return {
            'borrower_name': application.full_name,
            'borrower_phone': application.phone,
            'borrower_email': application.email,
            'library_card_id': application.card_number,
        }
    user = actor.user
    profile = user.profile
    return {
        'borrower_name': (profile.full_name if profile else None) or user.email,
        'borrower_phone': profile.phone if profile else None,
        'borrower_email': user.email,
        'library_card_id': NO_CARD,
    }


def borrow(actor, book_id, book_title=None):
    """Lend one copy of a book to `actor`.

    Raises NotAuthenticated for an anonymous actor, InvalidInput without a book id,
    NotFound for an unknown book and NoCopiesAvailable when the shelf is empty.
    """
    if not actor.is_authenticated:
        raise NotAuthenticated()
    if not book_id:
        raise InvalidInput('Book ID is required')

    book = db.session.get(Book, str(book_id))
    if not book:
        raise NotFound('Book not found')
    if book.available_copies <= 0:
        raise NoCopiesAvailable()

    if not _take_copy(book.id):
        # Another request took the last copy after the check above.
        db.session.rollback()
        raise NoCopiesAvailable()

    now = datetime.now()
    record = BookBorrow(
        user_id=actor.session_user_id,
        book_id=book.id,
        book_title=book_title or book.book_name,
        borrow_date=now,
        due_date=now + timedelta(days=LOAN_PERIOD_DAYS),
        status='borrowed',
        **borrower_snapshot(actor)
    )
    db.session.add(record)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Book %s borrowed by %s (loan %s)", book.id, actor.session_user_id, record.id)
    return record


def get_borrow(borrow_id):
    clean_id = str(borrow_id if borrow_id is not None else '').strip()
    if not clean_id:
        return None
    return db.session.get(BookBorrow, clean_id)


def mark_returned(borrow_id, actual_return_date=None):
    """Close a loan. A second call on the same loan raises AlreadyReturned."""
    record = get_borrow(borrow_id)
    if not record:
        raise NotFound('Borrow record not found')
    if record.status == 'returned':
        raise AlreadyReturned()

    return_date = _parse_datetime(actual_return_date, 'return date')
    closed = BookBorrow.query.filter_by(id=record.id, status='borrowed').update(
        {BookBorrow.status: 'returned', BookBorrow.actual_return_date: return_date},
        synchronize_session=False
    )
    if closed != 1:
        db.session.rollback()
        raise AlreadyReturned()

    _put_back_copy(record.book_id)
    db.session.commit()
    logger.info("Loan %s returned (book %s)", record.id, record.book_id)
    return db.session.get(BookBorrow, record.id)


def _reopen(record):
    if not _take_copy(record.book_id):
        db.session.rollback()
        raise NoCopiesAvailable()
    reopened = BookBorrow.query.filter_by(id=record.id, status='returned').update(
        {BookBorrow.status: 'borrowed', BookBorrow.actual_return_date: None},
        synchronize_session=False
    )
    if reopened != 1:
        # Re-opened by a concurrent request; give the copy back.
        db.session.rollback()
        return db.session.get(BookBorrow, record.id)
    db.session.commit()
    logger.info("Loan %s re-opened (book %s)", record.id, record.book_id)
    return db.session.get(BookBorrow, record.id)


def update_status(borrow_id, status, return_date=None):
    """Admin override of a loan's status.

    borrowed -> returned   same as mark_returned
    returned -> returned   AlreadyReturned
    returned -> borrowed   re-open the loan, taking a copy again
    borrowed -> borrowed   no change
    """
    clean_status = str(status if status is not None else '').strip().lower()
    if clean_status not in BORROW_STATUSES:
        raise InvalidStatus()

    record = get_borrow(borrow_id)
    if not record:
        raise NotFound('Borrow record not found')

    if clean_status == 'returned':
        return mark_returned(record.id, return_date)
    if record.status == 'borrowed':
        return record
    return _reopen(record)


def _apply_total(book, new_total):
    on_loan = book.total_copies - book.available_copies
    book.total_copies = new_total
    book.available_copies = min(new_total, max(0, new_total - on_loan))


def set_total_copies(book_id, new_total):
    """Change the number of copies owned, keeping the copies currently on loan."""
    copies = _parse_copies(new_total)
    book = Book.query.filter_by(id=str(book_id)).populate_existing().with_for_update().first()
    if not book:
        raise NotFound('Book not found')
    _apply_total(book, copies)
    db.session.commit()
    return book


def list_books():
    return Book.query.order_by(Book.created_at.desc()).all()


def create_book(data, book_image=None):
    book_name = text_value(data, 'bookName')
    short_intro = text_value(data, 'shortIntro')
    description = text_value(data, 'description')
    if not book_name or not short_intro or not description:
        raise InvalidInput('Book name, short intro and description are required')

    total = data.get('totalCopies')
    copies = _parse_copies(total) if total not in (None, '') else 1

    book = Book(
        book_name=book_name,
        short_intro=short_intro,
        description=description,
        book_image=book_image or text_value(data, 'bookImage') or None,
        total_copies=copies,
        available_copies=copies,
    )
    db.session.add(book)
    db.session.commit()
    logger.info("Book %s added with %d copies", book.id, copies)
    return book


BOOK_FIELDS = {
    'bookName': 'book_name',
    'shortIntro': 'short_intro',
    'description': 'description',
    'bookImage': 'book_image',
}


def update_book(book_id, data, book_image=None):
    book = Book.query.filter_by(id=str(book_id)).populate_existing().with_for_update().first()
    if not book:
        raise NotFound('Book not found')

    for key, attr in BOOK_FIELDS.items():
        if key in data:
            try:
                value = text_value(data, key)
                if attr != 'book_image' and not value:
                    raise InvalidInput(f'{key} cannot be empty')
            except InvalidInput:
                db.session.rollback()
                raise
            setattr(book, attr, value or None)
    if book_image:
        book.book_image = book_image

    total = data.get('totalCopies')
    if total not in (None, ''):
        try:
            copies = _parse_copies(total)
        except InvalidInput:
            db.session.rollback()
            raise
        _apply_total(book, copies)

    db.session.commit()
    return book


def delete_book(book_id):
    book = db.session.get(Book, str(book_id))
    if not book:
        raise NotFound('Book not found')
    db.session.delete(book)
    db.session.commit()


def borrows_for_actor(actor):
    """Admins see every loan; everyone else only their own."""
    if not actor.is_authenticated:
        raise NotAuthenticated()
    query = BookBorrow.query
    if not actor.can_admin:
        query = query.filter_by(user_id=actor.session_user_id)
    return query.order_by(BookBorrow.created_at.desc()).all()


def list_borrows():
    return BookBorrow.query.order_by(BookBorrow.created_at.desc()).all()


def delete_borrow(borrow_id):
    """Delete a loan record. An open loan puts its copy back on the shelf first."""
    record = get_borrow(borrow_id)
    if not record:
        raise NotFound('Borrow record not found')
    if record.status == 'borrowed':
        _put_back_copy(record.book_id)
    db.session.delete(record)
    db.session.commit()


def borrow_stats():
    """totalBooks counts every loan record, open or returned."""
    return {
        'totalBooks': BookBorrow.query.count(),
        'borrowedBooks': BookBorrow.query.filter_by(status='borrowed').count(),
        'returnedBooks': BookBorrow.query.filter_by(status='returned').count(),
    }
