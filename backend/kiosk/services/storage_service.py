# Overview: Local blob storage for catalog images (categories/, products/, prerolls/).

from __future__ import annotations

import os
import uuid

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..validation import ValidationError


ALLOWED_FOLDERS = ("categories", "products", "prerolls", "subcategories", "joint-options")
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif", ".svg", ".mp4", ".webm", ".glb"}


def _root() -> str:
    root = current_app.config["UPLOAD_FOLDER"]
    if not os.path.isabs(root):
        root = os.path.join(current_app.instance_path, root)
    return root


def save_upload(file: FileStorage, *, folder: str, owner_code: str, slot: str = "image") -> tuple[str, str]:
    """
    Store an uploaded file under <folder>/<owner_code>/<slot>-<uuid><ext>.

    Returns (public_url, storage_path). storage_path is what delete_blob() takes.
    """
    if folder not in ALLOWED_FOLDERS:
        raise ValidationError(f"Unknown storage folder: {folder}")
    filename = secure_filename(file.filename or "")
    ext = os.path.splitext(filename)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(f"File type not allowed: {ext or 'none'}")

    storage_path = f"{folder}/{secure_filename(owner_code)}/{slot}-{uuid.uuid4().hex[:12]}{ext}"
    full_path = os.path.join(_root(), storage_path)
    os.makedirs(os.path.dirname(full_path), exist_ok=True)
    file.save(full_path)
    return f"/uploads/{storage_path}", storage_path


def delete_blob(storage_path: str | None) -> bool:
    """Remove a stored file. Missing files are not an error."""
    if not storage_path:
        return False
    full_path = os.path.normpath(os.path.join(_root(), storage_path))
    if not full_path.startswith(os.path.normpath(_root())):
        raise ValidationError("Invalid storage path")
    try:
        os.remove(full_path)
        return True
    except FileNotFoundError:
        current_app.logger.info("Blob already removed: %s", storage_path)
        return False


def upload_root() -> str:
    return _root()
