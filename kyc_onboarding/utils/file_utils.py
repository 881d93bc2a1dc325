"""
File Utilities
Upload validation and per-session storage of identity documents
"""
import os
import uuid
import aiofiles
from pathlib import Path
from typing import Tuple
from loguru import logger

from kyc_onboarding.config import settings


ALLOWED_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.pdf'}
ALLOWED_MIME_TYPES = {
    'image/jpeg': ['.jpg', '.jpeg'],
    'image/jpg': ['.jpg', '.jpeg'],
    'image/png': ['.png'],
    'application/pdf': ['.pdf']
}
MAGIC_NUMBERS = {
    '.jpg': [b'\xff\xd8\xff'],
    '.jpeg': [b'\xff\xd8\xff'],
    '.png': [b'\x89PNG'],
    '.pdf': [b'%PDF']
}


def validate_upload(filename: str, content_type: str, content: bytes) -> Tuple[bool, str]:
    """
    Validate an uploaded document
    Returns (is_valid, error_message)
    """
    max_size = settings.MAX_FILE_SIZE_MB * 1024 * 1024
    if len(content) > max_size:
        return False, f"File size exceeds maximum allowed ({settings.MAX_FILE_SIZE_MB}MB)"

    if not content:
        return False, "Empty file uploaded"

    ext = get_file_extension(filename)
    if ext not in ALLOWED_EXTENSIONS:
        return False, f"File type not allowed. Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"

    if content_type not in ALLOWED_MIME_TYPES:
        return False, f"Invalid content type: {content_type}"

    if ext not in ALLOWED_MIME_TYPES[content_type]:
        return False, "File extension does not match content type"

    if not verify_magic_bytes(content[:8], ext):
        return False, "File content does not match declared type"

    return True, ""


def verify_magic_bytes(magic: bytes, extension: str) -> bool:
    """Verify file magic bytes match extension"""
    expected = MAGIC_NUMBERS.get(extension, [])
    return any(magic.startswith(m) for m in expected)


def session_dir(session_id: str) -> Path:
    return Path(settings.TEMP_UPLOAD_DIR) / sanitize_filename(session_id)


async def save_session_file(content: bytes, filename: str, session_id: str) -> str:
    """Store an uploaded document under the session's directory and return its path"""
    directory = session_dir(session_id)
    directory.mkdir(parents=True, exist_ok=True)

    file_path = directory / f"{uuid.uuid4()}{get_file_extension(filename)}"
    async with aiofiles.open(file_path, 'wb') as f:
        await f.write(content)

    logger.info(f"Saved upload: {file_path} ({len(content)} bytes)")
    return str(file_path)


async def read_session_file(file_path: str) -> bytes:
    async with aiofiles.open(file_path, 'rb') as f:
        return await f.read()


async def delete_session_file(file_path: str) -> bool:
    """Delete one stored upload"""
    try:
        if os.path.exists(file_path):
            os.remove(file_path)
            logger.info(f"Deleted upload: {file_path}")
            return True
        return False
    except OSError as e:
        logger.error(f"Error deleting upload {file_path}: {e}")
        return False


async def cleanup_session_files(session_id: str) -> int:
    """
    Remove every stored upload of a session
    Returns number of files deleted
    """
    directory = session_dir(session_id)
    deleted_count = 0

    if directory.exists():
        for file_path in directory.iterdir():
            try:
                file_path.unlink()
                deleted_count += 1
            except OSError as e:
                logger.error(f"Error deleting {file_path}: {e}")

        try:
            directory.rmdir()
        except OSError as e:
            logger.warning(f"Could not remove {directory}: {e}")

    logger.info(f"Cleaned up {deleted_count} uploads for session {session_id}")
    return deleted_count


def get_file_extension(filename: str) -> str:
    """Get file extension in lowercase"""
    return Path(filename or "").suffix.lower()


def sanitize_filename(filename: str) -> str:
    """Sanitize filename to prevent path traversal attacks"""
    sanitized = (filename or "").replace('/', '').replace('\\', '').replace('\x00', '')
    sanitized = Path(sanitized).name
    if len(sanitized) > 255:
        ext = Path(sanitized).suffix
        sanitized = sanitized[:255-len(ext)] + ext
    return sanitized
