"""models.py

SQLAlchemy models for the library:
 - User / Profile / UserRole: registered accounts, their profile and role assignments.
 - LibraryCardApplication / Student: card applications and the student projection created on approval.
 - Book / BookBorrow: catalog with copy counts and the loan records (borrower details are snapshots).
 - ContactMessage, Donation, Note, RareBook, Event: independent CRUD content.

Notes:
 - Ids are opaque strings; the seed admin account uses id "1".
 - `BookBorrow.user_id` is not a foreign key: it may hold an account id, "admin" or "card-<applicationId>".
 - `to_dict()` returns the camelCase JSON shape used by the API.
"""

import secrets
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def generate_id():
    return secrets.token_hex(8)


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    """Registered account.

    - email is unique; lookups are case-insensitive
    - account_type: user / student / admin (student when a class was given at registration)
    """
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    email = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    account_type = db.Column(db.String(20), nullable=False, default='user')
    created_at = db.Column(db.DateTime, default=datetime.now)

    __table_args__ = (
        db.Index('uq_users_email_lower', db.func.lower(email), unique=True),
    )

    profile = db.relationship('Profile', uselist=False, backref='user', cascade='all, delete-orphan')
    roles = db.relationship('UserRole', backref='user', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {'id': self.id, 'email': self.email, 'type': self.account_type, 'createdAt': _iso(self.created_at)}


class Profile(db.Model):
    __tablename__ = 'profiles'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), unique=True, nullable=False)
    full_name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(30))
    roll_number = db.Column(db.String(30))
    department = db.Column(db.String(100))
    student_class = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'fullName': self.full_name,
            'phone': self.phone,
            'rollNumber': self.roll_number,
            'department': self.department,
            'studentClass': self.student_class,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class UserRole(db.Model):
    """Role assignment: admin / moderator / user. An account may hold several."""
    __tablename__ = 'user_roles'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default='user')
    created_at = db.Column(db.DateTime, default=datetime.now)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'role', name='uq_user_role'),
    )

    def to_dict(self):
        return {'id': self.id, 'userId': self.user_id, 'role': self.role, 'createdAt': _iso(self.created_at)}


class LibraryCardApplication(db.Model):
    """Library card application.

    Generated fields (card_number, student_id, issue_date, valid_through) are filled in by
    card_service.submit_application. status: pending / approved / rejected.
    """
    __tablename__ = 'library_card_applications'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    user_id = db.Column(db.String(36), nullable=True)
    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    father_name = db.Column(db.String(120))
    dob = db.Column(db.Date)
    student_class = db.Column('class', db.String(50), nullable=False)
    field = db.Column(db.String(80))
    roll_no = db.Column(db.String(30), nullable=False)
    email = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(30), nullable=False)
    address_street = db.Column(db.String(200), nullable=False)
    address_city = db.Column(db.String(80), nullable=False)
    address_state = db.Column(db.String(80), nullable=False)
    address_zip = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')
    card_number = db.Column(db.String(80), nullable=False)
    student_id = db.Column(db.String(20))
    issue_date = db.Column(db.Date)
    valid_through = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        db.Index('uq_card_applications_email_lower', db.func.lower(email), unique=True),
        db.Index('uq_card_applications_card_number_lower', db.func.lower(card_number), unique=True),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'fatherName': self.father_name,
            'dob': _iso(self.dob),
            'class': self.student_class,
            'field': self.field,
            'rollNo': self.roll_no,
            'email': self.email,
            'phone': self.phone,
            'addressStreet': self.address_street,
            'addressCity': self.address_city,
            'addressState': self.address_state,
            'addressZip': self.address_zip,
            'status': self.status,
            'cardNumber': self.card_number,
            'studentId': self.student_id,
            'issueDate': _iso(self.issue_date),
            'validThrough': _iso(self.valid_through),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class Student(db.Model):
    """Read-only projection of an approved application, one per card number."""
    __tablename__ = 'students'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    user_id = db.Column(db.String(64), nullable=False)
    card_id = db.Column(db.String(80), nullable=False)
    name = db.Column(db.String(170), nullable=False)
    student_class = db.Column('class', db.String(50))
    field = db.Column(db.String(80))
    roll_no = db.Column(db.String(30))
    email = db.Column(db.String(120))
    phone = db.Column(db.String(30))
    created_at = db.Column(db.DateTime, default=datetime.now)

    __table_args__ = (
        db.Index('uq_students_card_id_lower', db.func.lower(card_id), unique=True),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'cardId': self.card_id,
            'name': self.name,
            'class': self.student_class,
            'field': self.field,
            'rollNo': self.roll_no,
            'email': self.email,
            'phone': self.phone,
            'createdAt': _iso(self.created_at),
        }


class Book(db.Model):
    """Catalog entry.

    Two copy counters:
    - total_copies: copies owned by the library (changed only by admin edits)
    - available_copies: copies on the shelf (changes on borrow/return)
    The CHECK constraint keeps 0 <= available_copies <= total_copies.
    """
    __tablename__ = 'books'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    book_name = db.Column(db.String(200), nullable=False)
    short_intro = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=False)
    book_image = db.Column(db.String(255))
    total_copies = db.Column(db.Integer, nullable=False, default=1)
    available_copies = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        db.CheckConstraint(
            'available_copies >= 0 AND available_copies <= total_copies',
            name='ck_book_copy_count'
        ),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'bookName': self.book_name,
            'shortIntro': self.short_intro,
            'description': self.description,
            'bookImage': self.book_image,
            'totalCopies': self.total_copies,
            'availableCopies': self.available_copies,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class BookBorrow(db.Model):
    """One loan.

    Note: book_title and the borrower_* fields are snapshots taken at borrow time so the
    history stays intact if the book, account or application later changes or is deleted.
    """
    __tablename__ = 'book_borrows'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    book_id = db.Column(db.String(36), nullable=False, index=True)
    book_title = db.Column(db.String(200), nullable=False)
    borrower_name = db.Column(db.String(170), nullable=False)
    borrower_phone = db.Column(db.String(30))
    borrower_email = db.Column(db.String(120))
    library_card_id = db.Column(db.String(80))
    borrow_date = db.Column(db.DateTime, nullable=False, default=datetime.now)
    due_date = db.Column(db.DateTime, nullable=False)
    actual_return_date = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='borrowed')  # borrowed, returned
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'bookId': self.book_id,
            'bookTitle': self.book_title,
            'borrowerName': self.borrower_name,
            'borrowerPhone': self.borrower_phone,
            'borrowerEmail': self.borrower_email,
            'libraryCardId': self.library_card_id,
            'borrowDate': _iso(self.borrow_date),
            'dueDate': _iso(self.due_date),
            'actualReturnDate': _iso(self.actual_return_date),
            'status': self.status,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class ContactMessage(db.Model):
    __tablename__ = 'contact_messages'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(120), nullable=False)
    subject = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_seen = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.now)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'subject': self.subject,
            'message': self.message,
            'isSeen': self.is_seen,
            'createdAt': _iso(self.created_at),
        }


class Donation(db.Model):
    __tablename__ = 'donations'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    method = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(150))
    email = db.Column(db.String(120))
    message = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='received')
    created_at = db.Column(db.DateTime, default=datetime.now)

    def to_dict(self):
        return {
            'id': self.id,
            'amount': str(self.amount) if self.amount is not None else None,
            'method': self.method,
            'name': self.name,
            'email': self.email,
            'message': self.message,
            'status': self.status,
            'createdAt': _iso(self.created_at),
        }


class Note(db.Model):
    """Class notes (PDF). status: active / inactive; only active notes are public."""
    __tablename__ = 'notes'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    student_class = db.Column('class', db.String(50), nullable=False)
    subject = db.Column(db.String(100), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    pdf_path = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='active')
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    def to_dict(self):
        return {
            'id': self.id,
            'class': self.student_class,
            'subject': self.subject,
            'title': self.title,
            'description': self.description,
            'pdfPath': self.pdf_path,
            'status': self.status,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class RareBook(db.Model):
    __tablename__ = 'rare_books'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(80), nullable=False, default='General')
    pdf_path = db.Column(db.String(255), nullable=False)
    cover_image = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='active')
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'pdfPath': self.pdf_path,
            'coverImage': self.cover_image,
            'status': self.status,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class Event(db.Model):
    __tablename__ = 'events'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    images = db.Column(db.JSON, default=list)
    event_date = db.Column('date', db.Date, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'images': self.images or [],
            'date': _iso(self.event_date),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
