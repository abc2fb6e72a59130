"""upload_service.py

Saves uploaded files (note PDFs, rare-book PDFs and covers, book and event images) into
UPLOAD_FOLDER and returns the public path they are served from.
"""

import os
import random
from datetime import datetime
from werkzeug.utils import secure_filename
from config import UPLOAD_FOLDER, UPLOAD_URL_PREFIX, IMAGE_EXTENSIONS, DOCUMENT_EXTENSIONS, allowed_file
from errors import InvalidInput

EXTENSIONS_BY_KIND = {
    'image': IMAGE_EXTENSIONS,
    'document': DOCUMENT_EXTENSIONS,
}


def save_upload(file, kind):
    """Store `file` (a werkzeug FileStorage) and return its public path.

    kind: 'image' or 'document'. Raises InvalidInput for a missing file or a disallowed extension.
    """
    if not file or not file.filename:
        raise InvalidInput('Missing file')

    extensions = EXTENSIONS_BY_KIND[kind]
    if not allowed_file(file.filename, extensions):
        allowed = ', '.join(sorted(extensions))
        raise InvalidInput(f'File type not supported. Allowed: {allowed}')

    unique_prefix = f"{int(datetime.now().timestamp() * 1000)}-{random.randint(0, 10**9)}"
    filename = secure_filename(f"{unique_prefix}-{file.filename}")

    os.makedirs(UPLOAD_FOLDER, exist_ok=True)
    file.save(os.path.join(UPLOAD_FOLDER, filename))
    return f"{UPLOAD_URL_PREFIX}/{filename}"


def resolve_upload(public_path):
    """Map a public upload path back to the file on disk (None when it is not an upload path)."""
    if not public_path or not public_path.startswith(UPLOAD_URL_PREFIX + '/'):
        return None
    filename = secure_filename(os.path.basename(public_path))
    return os.path.join(UPLOAD_FOLDER, filename)


def remove_upload(public_path):
    """Delete a previously saved upload. Missing files are ignored."""
    path = resolve_upload(public_path)
    if path and os.path.isfile(path):
        os.remove(path)
