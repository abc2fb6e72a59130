"""card_service.py

Library card issuance:
 - submit_application: validate, derive the card number and student id, store as pending
 - set_status: admin decision; approval creates the Student projection once per card number

Card number format: {fieldCode}-{rollNo}-{classToken}, e.g. "CS-45-12". A case-insensitive
collision appends -1, -2, ... until the number is free.

Uniqueness is enforced by unique indexes on card_number (applications) and card_id (students);
the check-then-insert steps here only pick a candidate, and an insert that loses a race to a
concurrent request is retried (card numbers) or treated as already done (students).
"""

import logging
import random
import re
from datetime import date, datetime, timedelta
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from models import db, LibraryCardApplication, Student
from errors import NotFound, Conflict, DuplicateEmail, InvalidInput, InvalidStatus, text_value
from config import FIELD_CODE_MAP, UNKNOWN_FIELD_CODE, CARD_VALIDITY_DAYS
from email_service import send_card_application_email, send_card_approved_email

logger = logging.getLogger(__name__)

STATUSES = ('pending', 'approved', 'rejected')
CARD_NUMBER_ATTEMPTS = 5

REQUIRED_FIELDS = {
    'firstName': 'first_name',
    'lastName': 'last_name',
    'class': 'student_class',
    'rollNo': 'roll_no',
    'email': 'email',
    'phone': 'phone',
    'addressStreet': 'address_street',
    'addressCity': 'address_city',
    'addressState': 'address_state',
    'addressZip': 'address_zip',
}
OPTIONAL_FIELDS = {
    'fatherName': 'father_name',
    'field': 'field',
}


def field_code(field):
    return FIELD_CODE_MAP.get(field or '', UNKNOWN_FIELD_CODE)


def class_token(student_class):
    """"Class 12" -> "12"; a class with no digits is used as written."""
    student_class = student_class or ''
    return re.sub(r'[^0-9]', '', student_class) or student_class


def card_number_taken(card_number):
    return LibraryCardApplication.query.filter(
        func.lower(LibraryCardApplication.card_number) == card_number.lower()
    ).first() is not None


def generate_card_number(field, roll_no, student_class):
    base = f"{field_code(field)}-{roll_no}-{class_token(student_class)}"
    card_number = base
    counter = 1
    while card_number_taken(card_number):
        card_number = f"{base}-{counter}"
        counter += 1
    return card_number


def generate_student_id():
    # Not checked against existing ids.
    return f"GCMN-{random.randint(0, 999999):06d}"


def email_taken(email):
    return LibraryCardApplication.query.filter(
        func.lower(LibraryCardApplication.email) == email.lower()
    ).first() is not None


def _parse_date(value):
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except ValueError:
        raise InvalidInput('Invalid date of birth, expected YYYY-MM-DD')


def _clean(data):
    cleaned = {}
    for key, attr in {**REQUIRED_FIELDS, **OPTIONAL_FIELDS}.items():
        value = text_value(data, key)
        if key == 'class' and not value:
            value = text_value(data, 'studentClass')
        cleaned[attr] = value or None

    missing = [key for key, attr in REQUIRED_FIELDS.items() if not cleaned[attr]]
    if missing:
        raise InvalidInput(f"Missing required fields: {', '.join(missing)}")
    return cleaned


def submit_application(data, user_id=None):
    """Store a new pending application and return it with its generated fields.

    Raises InvalidInput for missing fields and DuplicateEmail when an application with the
    same email (case-insensitive) exists.
    """
    fields = _clean(data)
    if email_taken(fields['email']):
        raise DuplicateEmail()

    dob = _parse_date(data.get('dob'))
    issue_date = date.today()

    for attempt in range(CARD_NUMBER_ATTEMPTS):
        application = LibraryCardApplication(
            user_id=user_id,
            dob=dob,
            status='pending',
            card_number=generate_card_number(fields['field'], fields['roll_no'], fields['student_class']),
            student_id=generate_student_id(),
            issue_date=issue_date,
            valid_through=issue_date + timedelta(days=CARD_VALIDITY_DAYS),
            **fields
        )
        db.session.add(application)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if email_taken(fields['email']):
                raise DuplicateEmail()
            logger.warning("Card number %s was taken concurrently, retrying", application.card_number)
            continue

        success, message = send_card_application_email(application)
        if not success:
            logger.info("Application %s stored without confirmation email: %s", application.id, message)
        return application

    raise Conflict('Could not allocate a unique card number, please try again')


def get_application(application_id):
    """Look up an application, comparing ids trimmed and as strings."""
    clean_id = str(application_id if application_id is not None else '').strip()
    if not clean_id:
        return None
    return db.session.get(LibraryCardApplication, clean_id)


def get_by_card_number(card_number):
    if not card_number:
        return None
    return LibraryCardApplication.query.filter(
        func.lower(LibraryCardApplication.card_number) == str(card_number).strip().lower()
    ).first()


def find_student(card_number):
    card = (card_number or '').strip().lower()
    return Student.query.filter(func.lower(func.trim(Student.card_id)) == card).first()


def _ensure_student(application):
    """Create the Student projection for an approved application unless one exists."""
    if find_student(application.card_number):
        logger.info("Student record exists for card %s", application.card_number)
        return False

    student = Student(
        user_id=application.user_id or f"card-{application.id}",
        card_id=application.card_number,
        name=f"{application.first_name} {application.last_name}",
        student_class=application.student_class,
        field=application.field,
        roll_no=application.roll_no,
        email=application.email,
        phone=application.phone,
    )
    try:
        with db.session.begin_nested():
            db.session.add(student)
    except IntegrityError:
        # A concurrent approval created it first.
        logger.info("Student record for card %s created concurrently", application.card_number)
        return False
    logger.info("Created student record for card %s", application.card_number)
    return True


def set_status(application_id, status):
    """Admin decision on an application.

    Raises InvalidStatus (before any lookup) for a status outside pending/approved/rejected,
    NotFound for an unknown id.
    """
    clean_status = str(status if status is not None else '').strip().lower()
    if clean_status not in STATUSES:
        raise InvalidStatus()

    application = get_application(application_id)
    if not application:
        raise NotFound('Application not found')

    old_status = application.status
    application.status = clean_status
    created = False
    if clean_status == 'approved':
        created = _ensure_student(application)
    db.session.commit()
    logger.info("Application %s: %s -> %s", application.id, old_status, clean_status)

    if clean_status == 'approved' and old_status != 'approved':
        success, message = send_card_approved_email(application)
        if not success:
            logger.info("Approval of %s not emailed: %s (student created: %s)", application.id, message, created)
    return application


def list_applications():
    return LibraryCardApplication.query.order_by(LibraryCardApplication.created_at.desc()).all()


def applications_for_actor(actor):
    """Admins see every application; card holders their own; accounts the ones they submitted."""
    if actor.can_admin:
        return list_applications()
    if actor.kind == 'library_card':
        return [actor.application]
    return LibraryCardApplication.query.filter_by(user_id=actor.id)\
        .order_by(LibraryCardApplication.created_at.desc()).all()


def delete_application(application_id):
    application = get_application(application_id)
    if not application:
        raise NotFound('Application not found')
    db.session.delete(application)
    db.session.commit()


def list_students():
    return Student.query.order_by(Student.created_at.desc()).all()
