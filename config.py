"""config.py

Purpose:
 - Create and configure the Flask `app` instance.
 - Session, upload, mail and database settings, plus the library's business constants.

Notes:
 - Every setting can be overridden from the environment (a .env file is loaded first).
 - The fixed admin login (ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_SECRET_KEY) is separate from
   the seed admin account (id "1") that is stored in the database.
"""

import os
import logging
from datetime import timedelta
from flask import Flask
from models import db
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO'))

# Create Flask app
app = Flask(__name__)

app.secret_key = os.getenv('SECRET_KEY') or os.getenv('SESSION_SECRET') or 'gcmn-library-secret-2024'

# Session config
app.config['SESSION_COOKIE_SECURE'] = os.getenv('SESSION_COOKIE_SECURE', 'False') == 'True'
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(hours=24)

# Upload configuration (note PDFs, rare-book PDFs and covers, book images, event images)
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER') or os.path.join(BASE_DIR, 'uploads')
os.makedirs(UPLOAD_FOLDER, exist_ok=True)
app.config['UPLOAD_FOLDER'] = UPLOAD_FOLDER
app.config['MAX_CONTENT_LENGTH'] = int(os.getenv('MAX_UPLOAD_MB', 1024)) * 1024 * 1024
UPLOAD_URL_PREFIX = '/uploads'

IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'webp'}
DOCUMENT_EXTENSIONS = {'pdf'}

# Email configuration (Flask-Mail)
app.config['MAIL_SERVER'] = os.getenv('MAIL_SERVER', 'smtp.gmail.com')
app.config['MAIL_PORT'] = int(os.getenv('MAIL_PORT', 587))
app.config['MAIL_USE_TLS'] = os.getenv('MAIL_USE_TLS', 'True') == 'True'
app.config['MAIL_USE_SSL'] = os.getenv('MAIL_USE_SSL', 'False') == 'True'
app.config['MAIL_USERNAME'] = os.getenv('MAIL_USERNAME')
app.config['MAIL_PASSWORD'] = os.getenv('MAIL_PASSWORD')
app.config['MAIL_DEFAULT_SENDER'] = os.getenv('MAIL_DEFAULT_SENDER') or os.getenv('MAIL_USERNAME')
app.config['MAIL_SUPPRESS_SEND'] = os.getenv('MAIL_SUPPRESS_SEND', 'False') == 'True'

# Loan period in days
LOAN_PERIOD_DAYS = 14
# Library card validity in days
CARD_VALIDITY_DAYS = 365

# Field of study -> card number prefix
FIELD_CODE_MAP = {
    'Computer Science': 'CS',
    'Commerce': 'COM',
    'Humanities': 'HM',
    'Pre-Engineering': 'PE',
    'Pre-Medical': 'PM',
}
UNKNOWN_FIELD_CODE = 'XX'

# Fixed admin login (email + password + secret key must all match)
ADMIN_EMAIL = os.getenv('ADMIN_EMAIL', 'admin@formen.com')
ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD', 'gcmn123')
ADMIN_SECRET_KEY = os.getenv('ADMIN_SECRET_KEY', 'GCMN-ADMIN-ONLY')
ADMIN_DISPLAY_NAME = 'System Admin'

# Seed admin account (id "1"), created on first start
SEED_ADMIN_ID = '1'
SEED_ADMIN_EMAIL = os.getenv('SEED_ADMIN_EMAIL', 'admin@gcmn.edu.pk')
SEED_ADMIN_PASSWORD = os.getenv('SEED_ADMIN_PASSWORD', 'change-me-admin')
PROTECTED_ACCOUNT_IDS = {SEED_ADMIN_ID, 'admin'}

LIBRARY_NAME = 'GCMN Library'

# Prefer a generic DATABASE_URL (Postgres/MySQL/SQLite) when provided
DATABASE_URL = os.getenv('DATABASE_URL') or os.getenv('DATABASE_URI')
if not DATABASE_URL:
    MYSQL_HOST = os.getenv('MYSQLHOST') or os.getenv('MYSQL_HOST')
    if MYSQL_HOST:
        MYSQL_USER = os.getenv('MYSQLUSER') or os.getenv('MYSQL_USER') or 'root'
        MYSQL_PASSWORD = os.getenv('MYSQLPASSWORD') or os.getenv('MYSQL_PASSWORD') or ''
        MYSQL_DB = os.getenv('MYSQLDATABASE') or os.getenv('MYSQL_DATABASE') or 'library_db'
        MYSQL_PORT = os.getenv('MYSQLPORT') or os.getenv('MYSQL_PORT') or '3306'

        # URL encode password to handle special characters like @
        from urllib.parse import quote_plus
        encoded_password = quote_plus(MYSQL_PASSWORD)

        DATABASE_URL = f"mysql+pymysql://{MYSQL_USER}:{encoded_password}@{MYSQL_HOST}:{MYSQL_PORT}/{MYSQL_DB}"
    else:
        DATABASE_URL = 'sqlite:///' + os.path.join(BASE_DIR, 'library.db')

app.config['SQLALCHEMY_DATABASE_URI'] = DATABASE_URL
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
if not DATABASE_URL.startswith('sqlite'):
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
        'pool_pre_ping': True,
        'pool_recycle': 280,
        'pool_size': 5,
        'max_overflow': 10,
        'connect_args': {
            'connect_timeout': 10
        }
    }

# Initialize database
db.init_app(app)


def allowed_file(filename, extensions):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in extensions
