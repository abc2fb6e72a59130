import os
import tempfile

import pytest

# Must be set before config.py is imported
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['MAIL_SUPPRESS_SEND'] = 'True'
os.environ['MAIL_DEFAULT_SENDER'] = 'library@gcmn.test'
os.environ['UPLOAD_FOLDER'] = tempfile.mkdtemp(prefix='gcmn-uploads-')

from app import app, db
from identity_service import seed_admin_account

app.config['TESTING'] = True


def _reset_database():
    with app.app_context():
        db.drop_all()
        db.create_all()
        seed_admin_account()


@pytest.fixture
def ctx():
    """Fresh schema, and an app context for calling the services directly."""
    _reset_database()
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client():
    _reset_database()
    return app.test_client()


def make_application(**overrides):
    data = {
        'firstName': 'Ali',
        'lastName': 'Khan',
        'fatherName': 'Ahmed Khan',
        'dob': '2007-03-14',
        'class': 'Class 12',
        'field': 'Computer Science',
        'rollNo': '45',
        'email': 'ali.khan@example.com',
        'phone': '03001234567',
        'addressStreet': '12 Mall Road',
        'addressCity': 'Lahore',
        'addressState': 'Punjab',
        'addressZip': '54000',
    }
    data.update(overrides)
    return data


@pytest.fixture
def application_data():
    return make_application
