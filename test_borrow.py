from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from models import db, Book, BookBorrow
from errors import NotAuthenticated, NotFound, InvalidInput, InvalidStatus, NoCopiesAvailable, AlreadyReturned
from config import ADMIN_EMAIL
from identity_service import Anonymous, FixedAdmin, AccountActor, LibraryCardHolder, register_account
import borrow_service
import card_service
from borrow_service import borrow, mark_returned, update_status, set_total_copies


def add_book(copies=1, name='Poems of Iqbal'):
    return borrow_service.create_book({
        'bookName': name,
        'shortIntro': 'Selected poems',
        'description': 'A collection of poems.',
        'totalCopies': copies,
    })


def account_actor():
    user = register_account({
        'email': 'reader@example.com',
        'password': 'secret123',
        'fullName': 'Hina Raza',
        'phone': '03211234567',
    })
    return AccountActor(user)


def copies(book_id):
    book = db.session.get(Book, book_id)
    db.session.refresh(book)
    return book.total_copies, book.available_copies


def test_last_copy_can_only_be_borrowed_once(ctx):
    book = add_book(copies=1)
    borrow(FixedAdmin(), book.id)
    assert copies(book.id) == (1, 0)

    with pytest.raises(NoCopiesAvailable):
        borrow(FixedAdmin(), book.id)
    assert BookBorrow.query.count() == 1


def test_borrow_and_return_restores_copies(ctx):
    book = add_book(copies=3)
    record = borrow(account_actor(), book.id)
    assert copies(book.id) == (3, 2)

    returned = mark_returned(record.id)
    assert returned.status == 'returned'
    assert returned.actual_return_date is not None
    assert copies(book.id) == (3, 3)


def test_second_return_is_rejected(ctx):
    book = add_book(copies=2)
    record = borrow(FixedAdmin(), book.id)
    mark_returned(record.id)
    assert copies(book.id) == (2, 2)

    with pytest.raises(AlreadyReturned):
        mark_returned(record.id)
    assert copies(book.id) == (2, 2)


def test_borrow_errors(ctx):
    with pytest.raises(NotAuthenticated):
        borrow(Anonymous(), 'anything')
    with pytest.raises(InvalidInput):
        borrow(FixedAdmin(), None)
    with pytest.raises(NotFound):
        borrow(FixedAdmin(), 'no-such-book')
    with pytest.raises(NotFound):
        mark_returned('no-such-loan')


def test_account_snapshot(ctx):
    book = add_book()
    before = datetime.now()
    record = borrow(account_actor(), book.id, 'Custom title')

    assert record.book_title == 'Custom title'
    assert record.borrower_name == 'Hina Raza'
    assert record.borrower_phone == '03211234567'
    assert record.borrower_email == 'reader@example.com'
    assert record.library_card_id == '-'
    assert record.status == 'borrowed'
    assert record.borrow_date >= before
    assert record.due_date - record.borrow_date == timedelta(days=14)


def test_snapshot_is_not_resynced(ctx):
    book = add_book()
    actor = account_actor()
    record = borrow(actor, book.id)
    actor.user.profile.full_name = 'Someone Else'
    db.session.commit()
    assert db.session.get(BookBorrow, record.id).borrower_name == 'Hina Raza'


def test_card_holder_snapshot(ctx, application_data):
    application = card_service.submit_application(application_data())
    card_service.set_status(application.id, 'approved')
    book = add_book()

    record = borrow(LibraryCardHolder(application), book.id)
    assert record.user_id == f'card-{application.id}'
    assert record.borrower_name == 'Ali Khan'
    assert record.borrower_email == 'ali.khan@example.com'
    assert record.library_card_id == 'CS-45-12'
    assert record.book_title == 'Poems of Iqbal'


def test_fixed_admin_snapshot(ctx):
    record = borrow(FixedAdmin(), add_book().id)
    assert record.user_id == 'admin'
    assert record.borrower_name == 'System Admin'
    assert record.borrower_email == ADMIN_EMAIL


def test_return_is_capped_after_total_reduced(ctx):
    book = add_book(copies=3)
    record = borrow(FixedAdmin(), book.id)
    set_total_copies(book.id, 1)
    assert copies(book.id) == (1, 0)

    mark_returned(record.id)
    assert copies(book.id) == (1, 1)


def test_set_total_copies_keeps_loans(ctx):
    book = add_book(copies=5)
    borrow(FixedAdmin(), book.id)
    borrow(FixedAdmin(), book.id)

    set_total_copies(book.id, 4)
    assert copies(book.id) == (4, 2)
    set_total_copies(book.id, '10')
    assert copies(book.id) == (10, 8)


@pytest.mark.parametrize('bad_total', [0, -1, 'abc', None, 2.5, True])
def test_set_total_copies_rejects_non_positive(ctx, bad_total):
    book = add_book(copies=2)
    with pytest.raises(InvalidInput):
        set_total_copies(book.id, bad_total)
    assert copies(book.id) == (2, 2)


def test_update_status_transitions(ctx):
    book = add_book(copies=1)
    record = borrow(FixedAdmin(), book.id)

    assert update_status(record.id, 'borrowed').status == 'borrowed'
    assert copies(book.id) == (1, 0)

    assert update_status(record.id, 'Returned', '2024-05-01T10:00:00').status == 'returned'
    assert copies(book.id) == (1, 1)
    assert db.session.get(BookBorrow, record.id).actual_return_date == datetime(2024, 5, 1, 10, 0)

    with pytest.raises(AlreadyReturned):
        update_status(record.id, 'returned')

    reopened = update_status(record.id, 'borrowed')
    assert reopened.status == 'borrowed'
    assert reopened.actual_return_date is None
    assert copies(book.id) == (1, 0)

    with pytest.raises(InvalidStatus):
        update_status(record.id, 'lost')


def test_reopen_needs_a_free_copy(ctx):
    book = add_book(copies=1)
    first = borrow(FixedAdmin(), book.id)
    mark_returned(first.id)
    borrow(FixedAdmin(), book.id)

    with pytest.raises(NoCopiesAvailable):
        update_status(first.id, 'borrowed')
    assert db.session.get(BookBorrow, first.id).status == 'returned'


def test_deleting_open_loan_puts_copy_back(ctx):
    book = add_book(copies=2)
    record = borrow(FixedAdmin(), book.id)
    borrow_service.delete_borrow(record.id)
    assert copies(book.id) == (2, 2)
    assert BookBorrow.query.count() == 0


def test_borrows_for_actor(ctx):
    book = add_book(copies=3)
    actor = account_actor()
    borrow(actor, book.id)
    borrow(FixedAdmin(), book.id)

    assert len(borrow_service.borrows_for_actor(actor)) == 1
    assert len(borrow_service.borrows_for_actor(FixedAdmin())) == 2
    assert borrow_service.borrow_stats() == {'totalBooks': 2, 'borrowedBooks': 2, 'returnedBooks': 0}


def test_copy_count_check_constraint(ctx):
    book = add_book(copies=1)
    book.available_copies = 2
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


def test_create_and_update_book(ctx):
    with pytest.raises(InvalidInput):
        borrow_service.create_book({'bookName': 'No intro'})

    book = add_book(copies=2)
    updated = borrow_service.update_book(book.id, {'bookName': 'Bang-e-Dra', 'totalCopies': 4})
    assert updated.book_name == 'Bang-e-Dra'
    assert copies(book.id) == (4, 4)

    borrow_service.delete_book(book.id)
    assert db.session.get(Book, book.id) is None


def test_book_fields_must_be_strings(ctx):
    with pytest.raises(InvalidInput):
        borrow_service.create_book({'bookName': 9, 'shortIntro': 'Intro', 'description': 'Text'})
    assert Book.query.count() == 0

    book = add_book(copies=2)
    with pytest.raises(InvalidInput):
        borrow_service.update_book(book.id, {'bookName': 'Bang-e-Dra', 'shortIntro': ['Selected']})
    with pytest.raises(InvalidInput):
        borrow_service.update_book(book.id, {'bookImage': 42})
    db.session.expire_all()
    unchanged = db.session.get(Book, book.id)
    assert unchanged.book_name == 'Poems of Iqbal'
    assert unchanged.short_intro == 'Selected poems'
    assert unchanged.book_image is None
