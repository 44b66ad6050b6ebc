"""Thin authenticated proxy to the media host for uploads that are not tied to a request field yet."""
from __future__ import annotations
from flask import Blueprint, request, abort
from service_center.decorators.auth import require_permissions
from service_center.services.media_host import get_media_host

media_bp = Blueprint('media', __name__)


@media_bp.post('/upload')
@require_permissions('SR.MEDIA')
def upload():
    file = request.files.get('file')
    if not file or not file.filename:
        abort(400, description='No file uploaded')
    folder = request.form.get('folderPath') or request.form.get('folder')
    result = get_media_host().upload(file, folder)
    return {
        'success': True,
        'secure_url': result['url'],
        'public_id': result['public_id'],
        'type': result['type'],
        'width': result['width'],
        'height': result['height'],
        'size': result['size'],
        'folder': result['folder'],
    }, 201


@media_bp.post('/delete')
@require_permissions('SR.MEDIA')
def delete():
    data = request.get_json(silent=True) or {}
    public_id = data.get('public_id')
    if not public_id or not isinstance(public_id, str):
        abort(400, description='public_id required')
    result = get_media_host().destroy(public_id, data.get('type') or 'image')
    if result == 'not found':
        abort(404, description='Image not found')
    return {'success': True, 'result': result}
