"""Customer-facing conversation thread on a request (staff replies and customer messages)."""
from __future__ import annotations
from service_center.models.customer_log import CustomerLogEntry
from service_center.models.service_request import ServiceRequest
from service_center.services.media_host import get_media_host
from service_center.utils.listing import iso_z
from service_center.utils.validation import ValidationFailed, read_payload


def customer_log_json(c: CustomerLogEntry):
    return {
        'id': c.id,
        'comment': c.comment,
        'media': c.media or [],
        'author': c.author,
        'created_at': iso_z(c.created_at),
    }


def add_customer_log_entry(session, sr: ServiceRequest, author: str) -> CustomerLogEntry:
    """Append an entry from the current request body; a comment or at least one file is required."""
    fields, files = read_payload()
    comment = fields.get('comment')
    comment = comment.strip() if isinstance(comment, str) and comment.strip() else None
    if not comment and not files:
        raise ValidationFailed(['Isi komentar atau lampirkan minimal 1 file.'])
    host = get_media_host()
    uploaded = host.upload_many(files, folder=f"customer_log/{sr.track_number}")
    media = [{'url': m['url'], 'public_id': m['public_id'], 'type': m['type']} for m in uploaded]
    try:
        entry = CustomerLogEntry(comment=comment, media=media, author=author)
        sr.customer_log.append(entry)
        sr.touch()
        session.commit()
    except Exception:
        session.rollback()
        host.discard(media)
        raise
    return entry

__all__ = ['customer_log_json', 'add_customer_log_entry']
