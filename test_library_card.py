import re
from datetime import date, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from models import db, LibraryCardApplication, Student
from errors import DuplicateEmail, InvalidInput, InvalidStatus, NotFound
from email_service import mail
import card_service
from card_service import field_code, class_token, generate_card_number, submit_application, set_status


def test_field_code():
    assert field_code('Computer Science') == 'CS'
    assert field_code('Commerce') == 'COM'
    assert field_code('Humanities') == 'HM'
    assert field_code('Pre-Engineering') == 'PE'
    assert field_code('Pre-Medical') == 'PM'
    assert field_code('Arts') == 'XX'
    assert field_code(None) == 'XX'


def test_class_token():
    assert class_token('Class 12') == '12'
    assert class_token('1st Year') == '1'
    assert class_token('Matric') == 'Matric'


def test_card_numbers_get_suffixes(ctx, application_data):
    first = submit_application(application_data())
    second = submit_application(application_data(email='other@example.com'))
    third = submit_application(application_data(email='third@example.com'))
    assert first.card_number == 'CS-45-12'
    assert second.card_number == 'CS-45-12-1'
    assert third.card_number == 'CS-45-12-2'


def test_card_number_collision_is_case_insensitive(ctx, application_data):
    application = submit_application(application_data())
    application.card_number = 'cs-45-12'
    db.session.commit()
    assert generate_card_number('Computer Science', '45', 'Class 12') == 'CS-45-12-1'


def test_card_numbers_stay_unique(ctx, application_data):
    for i in range(5):
        submit_application(application_data(email=f'student{i}@example.com'))
    numbers = [a.card_number.lower() for a in LibraryCardApplication.query.all()]
    assert len(numbers) == len(set(numbers))


def test_generated_fields(ctx, application_data):
    application = submit_application(application_data(field='Arts', rollNo='7', **{'class': 'Matric'}))
    assert application.card_number == 'XX-7-Matric'
    assert application.status == 'pending'
    assert re.fullmatch(r'GCMN-\d{6}', application.student_id)
    assert application.issue_date == date.today()
    assert application.valid_through - application.issue_date == timedelta(days=365)
    assert application.dob == date(2007, 3, 14)


def test_duplicate_email_is_rejected(ctx, application_data):
    submit_application(application_data())
    with pytest.raises(DuplicateEmail):
        submit_application(application_data(email='ALI.KHAN@example.com', rollNo='46'))
    assert LibraryCardApplication.query.count() == 1


def test_missing_fields(ctx, application_data):
    with pytest.raises(InvalidInput) as exc:
        submit_application(application_data(phone='', addressZip=None))
    assert 'phone' in exc.value.message
    assert 'addressZip' in exc.value.message


def test_class_may_be_sent_as_student_class(ctx, application_data):
    data = application_data()
    data['studentClass'] = data.pop('class')
    assert submit_application(data).card_number == 'CS-45-12'


def test_approval_creates_one_student(ctx, application_data):
    application = submit_application(application_data())
    set_status(application.id, 'approved')
    set_status(application.id, 'approved')

    students = Student.query.all()
    assert len(students) == 1
    assert students[0].card_id == 'CS-45-12'
    assert students[0].name == 'Ali Khan'
    assert students[0].user_id == f'card-{application.id}'


def test_student_linked_to_account(ctx, application_data):
    application = submit_application(application_data(), user_id='acct-42')
    set_status(application.id, 'approved')
    assert Student.query.one().user_id == 'acct-42'


def test_existing_student_with_other_case_is_reused(ctx, application_data):
    application = submit_application(application_data())
    db.session.add(Student(user_id='x', card_id='cs-45-12', name='Ali Khan'))
    db.session.commit()
    set_status(application.id, 'approved')
    assert Student.query.count() == 1


def test_status_is_validated_before_lookup(ctx, application_data):
    with pytest.raises(InvalidStatus):
        set_status('no-such-id', 'archived')
    with pytest.raises(NotFound):
        set_status('no-such-id', 'approved')

    application = submit_application(application_data())
    updated = set_status(f'  {application.id} ', ' Rejected ')
    assert updated.status == 'rejected'
    assert Student.query.count() == 0


def test_approval_sends_email(ctx, application_data):
    application = submit_application(application_data())
    with mail.record_messages() as outbox:
        set_status(application.id, 'approved')
    assert len(outbox) == 1
    assert outbox[0].recipients == ['ali.khan@example.com']
    assert 'CS-45-12' in outbox[0].html


def test_failed_email_keeps_application(ctx, application_data, monkeypatch):
    def broken_send(message):
        raise ConnectionError('smtp down')

    monkeypatch.setattr(mail, 'send', broken_send)
    application = submit_application(application_data())
    assert db.session.get(LibraryCardApplication, application.id) is not None


def test_applications_for_actor(ctx, application_data):
    from identity_service import FixedAdmin, LibraryCardHolder

    mine = submit_application(application_data())
    submit_application(application_data(email='other@example.com'))

    assert len(card_service.applications_for_actor(FixedAdmin())) == 2
    assert [a.id for a in card_service.applications_for_actor(LibraryCardHolder(mine))] == [mine.id]


def test_delete_application(ctx, application_data):
    application = submit_application(application_data())
    card_service.delete_application(application.id)
    assert card_service.get_by_card_number('CS-45-12') is None
    with pytest.raises(NotFound):
        card_service.delete_application(application.id)


def _insert_copy(application, **overrides):
    columns = ('first_name', 'last_name', 'student_class', 'roll_no', 'email', 'phone', 'address_street',
               'address_city', 'address_state', 'address_zip', 'card_number')
    values = {column: getattr(application, column) for column in columns}
    values.update(overrides)
    db.session.add(LibraryCardApplication(**values))
    db.session.commit()


def test_email_unique_index_ignores_case(ctx, application_data):
    application = submit_application(application_data())
    with pytest.raises(IntegrityError):
        _insert_copy(application, email='ALI.KHAN@EXAMPLE.COM', card_number='CS-45-12-9')
    db.session.rollback()
    assert LibraryCardApplication.query.count() == 1


def test_card_number_unique_index_ignores_case(ctx, application_data):
    application = submit_application(application_data())
    with pytest.raises(IntegrityError):
        _insert_copy(application, email='other@example.com', card_number='cs-45-12')
    db.session.rollback()
    assert LibraryCardApplication.query.count() == 1


def test_application_email_escapes_html(ctx, application_data):
    with mail.record_messages() as outbox:
        submit_application(application_data(firstName='<script>alert(1)</script>'))
    assert len(outbox) == 1
    assert '&lt;script&gt;alert(1)&lt;/script&gt;' in outbox[0].html
    assert '<script>' not in outbox[0].html


@pytest.mark.parametrize('field, value', [('email', 12345), ('firstName', ['Ali']), ('class', {'name': '12'})])
def test_non_string_fields_are_rejected(ctx, application_data, field, value):
    with pytest.raises(InvalidInput) as exc:
        submit_application(application_data(**{field: value}))
    assert field in exc.value.message
    assert LibraryCardApplication.query.count() == 0
