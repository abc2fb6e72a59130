"""app.py

Purpose:
 - Finish configuring the Flask app created in config.py (mail, error handlers, request log).
 - Register the application's blueprints under /api.
 - Create the tables (db.create_all()) and the seed admin account on start-up.
 - Serve uploaded files from /uploads/<filename>.

Quick notes on the main parts:
 - LibraryError subclasses become {"error": message, "kind": kind} with their HTTP status.
 - RequestEntityTooLarge (upload over MAX_CONTENT_LENGTH) returns 413 JSON.
 - In the __main__ block the port comes from PORT or the first CLI argument.
"""

import time
import logging
from config import app, UPLOAD_FOLDER
from models import db
from flask import request, jsonify, g, send_from_directory
from werkzeug.exceptions import RequestEntityTooLarge
from errors import LibraryError
from identity_service import seed_admin_account

logger = logging.getLogger(__name__)

# Initialize Flask-Mail
from email_service import mail
mail.init_app(app)


@app.errorhandler(LibraryError)
def handle_library_error(e):
    return jsonify(e.to_dict()), e.status_code


# Upload larger than MAX_CONTENT_LENGTH
@app.errorhandler(RequestEntityTooLarge)
def handle_file_too_large(e):
    limit_mb = (app.config.get('MAX_CONTENT_LENGTH') or 0) // (1024 * 1024)
    return jsonify({'error': f'File too large. The limit is {limit_mb}MB.', 'kind': 'file_too_large'}), 413


@app.before_request
def start_timer():
    g.request_started = time.perf_counter()


@app.after_request
def log_api_request(response):
    if request.path.startswith('/api'):
        started = g.get('request_started')
        elapsed_ms = (time.perf_counter() - started) * 1000 if started else 0
        logger.info("%s %s %s in %dms", request.method, request.path, response.status_code, elapsed_ms)
    return response


@app.route('/uploads/<path:filename>')
def uploaded_file(filename):
    return send_from_directory(UPLOAD_FOLDER, filename)


# Import blueprints
from routes.main import main as main_blueprint
from routes.auth import auth as auth_blueprint
from routes.book import book as book_blueprint
from routes.user import user as user_blueprint
from routes.card import card as card_blueprint
from routes.admin import admin as admin_blueprint
from routes.content import content as content_blueprint

# Register blueprints with unique names and prefixes
app.register_blueprint(main_blueprint, name='main_bp', url_prefix='/api')
app.register_blueprint(auth_blueprint, name='auth_bp', url_prefix='/api/auth')
app.register_blueprint(book_blueprint, name='book_bp', url_prefix='/api')
app.register_blueprint(user_blueprint, name='user_bp', url_prefix='/api')
app.register_blueprint(card_blueprint, name='card_bp', url_prefix='/api')
app.register_blueprint(admin_blueprint, name='admin_bp', url_prefix='/api/admin')
app.register_blueprint(content_blueprint, name='content_bp', url_prefix='/api/admin')

# Create tables and the seed admin account
with app.app_context():
    db.create_all()
    if seed_admin_account():
        logger.info("Created seed admin account")

if __name__ == '__main__':
    import os
    import sys

    # Prefer PORT from environment. Fallback to CLI arg or 5000
    port = int(os.environ.get('PORT') or (int(sys.argv[1]) if len(sys.argv) > 1 else 5000))

    # Do not force debug=True here. Use FLASK_DEBUG or environment to control debug mode.
    debug_mode = os.environ.get('FLASK_DEBUG', '0') in ('1', 'true', 'True')
    logger.info("Starting server on port %d", port)
    app.run(debug=debug_mode, port=port, host='0.0.0.0')
