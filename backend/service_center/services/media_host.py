"""Client for the Cloudinary media host that stores photos, videos and signatures.

Uploads go through the cloudinary SDK server side so the API secret never reaches a browser.
Files are validated for type and size before any network call.
"""
from __future__ import annotations
import logging
import mimetypes
import re
import time
from typing import Dict, Iterable, List, Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from flask import current_app, abort
from werkzeug.datastructures import FileStorage

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {'image/jpeg', 'image/jpg', 'image/png', 'image/gif', 'image/webp', 'image/heic'}
ALLOWED_VIDEO_TYPES = {'video/mp4', 'video/quicktime', 'video/webm'}
MAX_IMAGE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_VIDEO_SIZE = 50 * 1024 * 1024  # 50MB


class MediaHostError(Exception):
    """The media host rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _content_type(file: FileStorage) -> str:
    content_type = (file.mimetype or '').lower()
    if not content_type or content_type in ('application/octet-stream', 'binary/octet-stream'):
        guessed = mimetypes.guess_type(file.filename or '')[0]
        if not guessed:
            abort(400, description='Unable to determine file type')
        content_type = guessed.lower()
    return content_type


def _file_size(file: FileStorage) -> int:
    stream = file.stream
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(0)
    return size


def validate_file(file: FileStorage) -> str:
    """Return the host resource type ('image' | 'video') or abort 400."""
    if not file or not file.filename:
        abort(400, description='No file uploaded')
    content_type = _content_type(file)
    size = _file_size(file)
    if content_type in ALLOWED_IMAGE_TYPES:
        if size > MAX_IMAGE_SIZE:
            abort(400, description=f"Image too large. Maximum size: {MAX_IMAGE_SIZE / (1024*1024):.1f}MB")
        return 'image'
    if content_type in ALLOWED_VIDEO_TYPES:
        if size > MAX_VIDEO_SIZE:
            abort(400, description=f"Video too large. Maximum size: {MAX_VIDEO_SIZE / (1024*1024):.1f}MB")
        return 'video'
    abort(400, description=f"Unsupported file type {content_type}")


def safe_folder(folder: Optional[str]) -> str:
    cleaned = re.sub(r'[^A-Za-z0-9_/\-]', '', folder or '')
    cleaned = re.sub(r'/{2,}', '/', cleaned).strip('/')
    return cleaned or 'default'


class MediaHost:
    def __init__(self, cloud_name: str, api_key: str, api_secret: str, root_folder: str = 'service_form',
                 timeout: float = 30, uploader=None):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.root_folder = root_folder
        self.timeout = timeout
        self.uploader = uploader or cloudinary.uploader

    @classmethod
    def from_config(cls, config) -> 'MediaHost':
        return cls(
            cloud_name=config.get('MEDIA_CLOUD_NAME') or '',
            api_key=config.get('MEDIA_API_KEY') or '',
            api_secret=config.get('MEDIA_API_SECRET') or '',
            root_folder=config.get('MEDIA_ROOT_FOLDER') or 'service_form',
            timeout=float(config.get('MEDIA_TIMEOUT') or 30),
        )

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def configure(self):
        """Push credentials into the process-wide cloudinary config. Called once by the app factory."""
        cloudinary.config(cloud_name=self.cloud_name, api_key=self.api_key, api_secret=self.api_secret, secure=True)

    def _call(self, action: str, *args, **options) -> dict:
        if not self.configured:
            raise MediaHostError('Media host is not configured')
        try:
            return getattr(self.uploader, action)(*args, timeout=self.timeout, **options) or {}
        except cloudinary.exceptions.Error as e:
            logger.error('media host %s failed: %s', action, e)
            raise MediaHostError(str(e)) from e

    def upload(self, file: FileStorage, folder: Optional[str] = None) -> Dict[str, object]:
        """Validate and upload one file under <root>/<folder>; returns {url, public_id, type, ...}."""
        resource_type = validate_file(file)
        stem = re.sub(r'\s+', '_', (file.filename or 'upload').rsplit('.', 1)[0])
        target = f"{self.root_folder}/{safe_folder(folder)}"
        body = self._call('upload', file.stream, folder=target,
                          public_id=f"{int(time.time() * 1000)}_{stem}", resource_type=resource_type)
        if not body.get('secure_url'):
            raise MediaHostError('Upload failed: no secure_url returned')
        logger.info('uploaded %s to %s', body.get('public_id'), target)
        return {
            'url': body['secure_url'],
            'public_id': body.get('public_id'),
            'type': resource_type,
            'width': body.get('width'),
            'height': body.get('height'),
            'size': body.get('bytes'),
            'folder': target,
        }

    def destroy(self, public_id: str, resource_type: str = 'image') -> str:
        """Delete a hosted file. Returns the host's result ('ok' or 'not found')."""
        result = self._call('destroy', public_id, resource_type=resource_type, invalidate=True).get('result', '')
        logger.info('destroy %s -> %s', public_id, result)
        return result

    def upload_many(self, files: Iterable[FileStorage], folder: Optional[str] = None) -> List[Dict[str, object]]:
        """Upload all files or none: a failure part-way removes the files already uploaded."""
        uploaded: List[Dict[str, object]] = []
        try:
            for f in files:
                uploaded.append(self.upload(f, folder))
        except Exception:
            self.discard(uploaded)
            raise
        return uploaded

    def discard(self, media: Iterable[Dict[str, object]]):
        """Best-effort removal of orphaned uploads after a failed database write."""
        for m in media:
            public_id = m.get('public_id')
            if not public_id:
                continue
            try:
                self.destroy(str(public_id), str(m.get('type') or 'image'))
            except MediaHostError:
                logger.warning('could not remove orphaned media %s', public_id, exc_info=True)


def get_media_host() -> MediaHost:
    return current_app.extensions['media_host']

__all__ = ['MediaHost', 'MediaHostError', 'get_media_host', 'validate_file', 'safe_folder']
