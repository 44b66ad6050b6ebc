from __future__ import annotations
from flask import Blueprint, request, abort, current_app
from flask_jwt_extended import get_jwt
from sqlalchemy import or_, cast, String
from service_center import get_db
from service_center.decorators.auth import require_permissions
from service_center.decorators.audit import audit_log
from service_center.models.authz import User
from service_center.models.service_request import ServiceRequest, StatusLogEntry
from service_center.models.work_log import WorkLogEntry
from service_center.services.customer_log import customer_log_json, add_customer_log_entry
from service_center.models.media_asset import MediaAsset
from service_center.constants.roles import TECHNICIAN_ROLES
from service_center.constants.statuses import (
    ALL_STATUSES, LEGACY_ALIASES, normalize_status, build_transition_graph,
)
from service_center.services.policy import (
    current_user_id, current_email, assert_author_or_supervisor, assert_branch_access, branch_scope, filter_query_by_branches,
)
from service_center.services.billing import normalize_estimate_items, replace_estimate
from service_center.services.media_host import get_media_host
from service_center.services.public_views import issue_public_view
from service_center.services.service_requests import (
    validate_intake_fields, resolve_branch, create_service_request, raise_if_errors, get_request_or_404,
    load_for_write, etag_for, with_etag, sr_json, sr_detail_json, estimate_json, status_log_json,
    media_json, snapshot,
)
from service_center.utils.fsm import TransitionValidator
from service_center.utils.listing import (
    apply_pagination, make_cached_list_response, make_cached_record_response, handle_conditional, iso_z,
)
from service_center.utils.sorting import apply_multi_sort
from service_center.utils.validation import validate_status, string_list, read_payload, ValidationFailed

sr_bp = Blueprint('service_requests', __name__)

STATUS_FSM = TransitionValidator(build_transition_graph(), normalizer=normalize_status)

SORTABLE = {
    'created_at': ServiceRequest.created_at,
    'updated_at': ServiceRequest.updated_at,
    'track_number': ServiceRequest.track_number,
    'nama': ServiceRequest.nama,
    'status': ServiceRequest.status,
    'total_biaya': ServiceRequest.total_biaya,
    'id': ServiceRequest.id,
}


def _prefetch(kw):
    return snapshot(kw.get('request_id'))


def _stored_spellings(status: str):
    """Every stored value that reads back as status (canonical plus legacy aliases)."""
    return [status] + [alias for alias, canonical in LEGACY_ALIASES.items() if canonical == status]


# ---------- Intake & records ---------- #

@sr_bp.post('')
@require_permissions('SR.CREATE')
@audit_log('SR.CREATE', entity='ServiceRequest', entity_id_key='id', meta_keys=['track_number', 'branch_id', 'status'])
def create_request():
    session = get_db()
    data = request.get_json(silent=True) or {}
    clean, errors = validate_intake_fields(data)
    scope = branch_scope()
    branch_id = resolve_branch(session, data, scope[0] if scope else None, errors)
    raise_if_errors(errors)
    assert_branch_access(branch_id)
    sr = create_service_request(
        session, clean, branch_id, current_user_id(),
        prefix=current_app.config['TRACK_NUMBER_PREFIX'], ttl_days=current_app.config['PUBLIC_VIEW_TTL_DAYS'],
    )
    session.commit()
    return with_etag(sr_detail_json(sr), sr, 201)


def _list_query(session):
    q = session.query(ServiceRequest)
    scope = branch_scope()
    if scope is not None:
        q = filter_query_by_branches(q, ServiceRequest.branch_id, scope)
    elif request.args.get('branch_id'):
        try:
            q = q.filter(ServiceRequest.branch_id==int(request.args['branch_id']))
        except ValueError:
            abort(400, description='branch_id must be int')
    status = request.args.get('status')
    if status:
        q = q.filter(ServiceRequest.status.in_(_stored_spellings(normalize_status(status))))
    term = (request.args.get('q') or '').strip()
    if term:
        like = f"%{term}%"
        q = q.filter(or_(
            ServiceRequest.track_number.ilike(like),
            ServiceRequest.nama.ilike(like),
            ServiceRequest.no_hp.ilike(like),
        ))
    technician = (request.args.get('technician') or '').strip().lower()
    if technician:
        q = q.filter(cast(ServiceRequest.assigned_technicians, String).like(f'%"{technician}"%'))
    return apply_multi_sort(q, request.args.get('sort'), SORTABLE, ServiceRequest.id,
                            default=[ServiceRequest.created_at.desc(), ServiceRequest.id.desc()])


@sr_bp.route('', methods=['GET', 'HEAD'])
@require_permissions('SR.READ')
def list_requests():
    session = get_db()
    paged_q, total, limit, offset = apply_pagination(_list_query(session))
    rows = paged_q.all()
    latest_ts = max((r.updated_at for r in rows if r.updated_at), default=None)
    resp, etag = make_cached_list_response([sr_json(r) for r in rows], total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


@sr_bp.route('/<int:request_id>', methods=['GET', 'HEAD'])
@require_permissions('SR.READ')
def get_request(request_id: int):
    session = get_db()
    sr = get_request_or_404(session, request_id)
    etag = etag_for(sr)
    cond = handle_conditional(etag, sr.updated_at)
    if cond:
        return cond
    return make_cached_record_response(sr_detail_json(sr), etag, sr.updated_at)


@sr_bp.patch('/<int:request_id>')
@require_permissions('SR.UPDATE')
@audit_log('SR.UPDATE', entity='ServiceRequest', entity_id_key='id', diff_keys=['nama', 'alamat', 'no_hp', 'email', 'merk', 'tipe', 'serial_number', 'keluhan', 'spesifikasi_teknis', 'jenis_perangkat', 'accessories', 'kondisi', 'garansi', 'prioritas_service', 'penerima_service'], pre_fetch=lambda a, kw: _prefetch(kw))
def update_request(request_id: int):
    session = get_db()
    sr = load_for_write(session, request_id)
    data = request.get_json(silent=True) or {}
    clean, errors = validate_intake_fields(data, partial=True)
    raise_if_errors(errors)
    if not clean:
        abort(400, description='No editable fields supplied')
    for key, value in clean.items():
        setattr(sr, key, value)
    sr.touch()
    session.commit()
    return with_etag(sr_detail_json(sr), sr)


@sr_bp.delete('/<int:request_id>')
@require_permissions('SR.DELETE')
@audit_log('SR.DELETE', entity='ServiceRequest', entity_id_arg='request_id', meta_keys=['track_number', 'media_removed'])
def delete_request(request_id: int):
    """Hard delete with every sub-record; hosted files are removed after the rows are gone."""
    session = get_db()
    sr = load_for_write(session, request_id)
    media = [{'public_id': a.public_id, 'type': a.resource_type} for a in sr.media_assets]
    for e in sr.work_log:
        media.extend(e.media or [])
    for c in sr.customer_log:
        media.extend(c.media or [])
    for p in sr.dp_payments:
        media.extend(p.proof or [])
    track_number = sr.track_number
    session.delete(sr)
    session.commit()
    get_media_host().discard(media)
    return {'id': request_id, 'track_number': track_number, 'media_removed': len(media)}


# ---------- Status ---------- #

@sr_bp.post('/<int:request_id>/status')
@require_permissions('SR.STATUS')
@audit_log('SR.STATUS.UPDATE', entity='ServiceRequest', entity_id_key='id', diff_keys=['status'], pre_fetch=lambda a, kw: _prefetch(kw), meta_keys=['track_number'])
def update_status(request_id: int):
    """Append one status log entry and move the request; earlier entries are never touched."""
    session = get_db()
    sr = load_for_write(session, request_id)
    data = request.get_json(silent=True) or {}
    if not data.get('status'):
        abort(400, description='status required')
    target = normalize_status(data['status'])
    validate_status(target, ALL_STATUSES)
    STATUS_FSM.assert_can_transition(sr.status, target)
    note = data.get('note')
    note = note.strip() if isinstance(note, str) and note.strip() else None
    sr.status_log.append(StatusLogEntry(status=target, note=note, updated_by=current_email() or str(current_user_id())))
    sr.status = target
    sr.touch()
    session.commit()
    return with_etag(sr_detail_json(sr), sr)


@sr_bp.get('/<int:request_id>/status-log')
@require_permissions('SR.READ')
def list_status_log(request_id: int):
    session = get_db()
    sr = get_request_or_404(session, request_id)
    return {'data': [status_log_json(e) for e in sr.status_log], 'allowed_next': sorted(STATUS_FSM.allowed_targets(sr.status))}


# ---------- Estimate ---------- #

@sr_bp.put('/<int:request_id>/estimate')
@require_permissions('SR.ESTIMATE')
@audit_log('SR.ESTIMATE.SAVE', entity='ServiceRequest', entity_id_key='id', diff_keys=['total_biaya'], pre_fetch=lambda a, kw: _prefetch(kw), meta_keys=['subtotal'])
def save_estimate(request_id: int):
    session = get_db()
    sr = load_for_write(session, request_id)
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get('items'), list):
        abort(400, description='items must be a list')
    items = normalize_estimate_items(data['items'])
    replace_estimate(sr, items)
    session.commit()
    return with_etag(estimate_json(sr), sr)


# ---------- Technicians ---------- #

def _technician_query(session, sr: ServiceRequest):
    q = session.query(User).filter(User.approved.is_(True), User.role.in_(TECHNICIAN_ROLES))
    if sr.branch_id is not None:
        q = q.filter(User.branch_id==sr.branch_id)
    return q


@sr_bp.put('/<int:request_id>/technicians')
@require_permissions('SR.ASSIGN')
@audit_log('SR.TECHNICIANS.SET', entity='ServiceRequest', entity_id_key='id', diff_keys=['assigned_technicians'], pre_fetch=lambda a, kw: _prefetch(kw))
def set_technicians(request_id: int):
    session = get_db()
    sr = load_for_write(session, request_id)
    data = request.get_json(silent=True) or {}
    emails = [e.lower() for e in string_list(data.get('technicians'))]
    if not emails:
        raise ValidationFailed(['Pilih minimal 1 teknisi.'])
    eligible = {u.email.lower() for u in _technician_query(session, sr).filter(User.email.in_(emails))}
    unknown = [e for e in emails if e not in eligible]
    if unknown:
        raise ValidationFailed([f"{e} bukan teknisi aktif cabang ini." for e in unknown])
    sr.assigned_technicians = emails
    sr.touch()
    session.commit()
    return with_etag({'id': sr.id, 'assigned_technicians': list(sr.assigned_technicians)}, sr)


@sr_bp.get('/<int:request_id>/technicians/candidates')
@require_permissions('SR.ASSIGN')
def technician_candidates(request_id: int):
    session = get_db()
    sr = get_request_or_404(session, request_id)
    assigned = set(sr.assigned_technicians or [])
    rows = _technician_query(session, sr).order_by(User.name.asc()).all()
    return {'data': [
        {'id': u.id, 'name': u.name, 'email': u.email, 'role': u.role}
        for u in rows if u.email.lower() not in assigned
    ]}


# ---------- Work log ---------- #

def _work_log_json(e: WorkLogEntry):
    return {
        'id': e.id,
        'description': e.description,
        'detailed_note': e.detailed_note,
        'media': e.media or [],
        'author_email': e.author_email,
        'author_name': e.author_name,
        'created_at': iso_z(e.created_at),
    }


def _text(fields: dict, *keys: str):
    for key in keys:
        value = fields.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


@sr_bp.post('/<int:request_id>/work-log')
@require_permissions('SR.WORKLOG')
@audit_log('SR.WORKLOG.ADD', entity='ServiceRequest', entity_id_arg='request_id', meta_keys=['id', 'media_count'])
def add_work_log(request_id: int):
    session = get_db()
    sr = load_for_write(session, request_id)
    fields, files = read_payload()
    description = _text(fields, 'description')
    detailed_note = _text(fields, 'detailed_note', 'catatan_rinci')
    if not description and not detailed_note and not files:
        raise ValidationFailed(['Isi deskripsi, catatan, atau lampirkan minimal 1 file.'])
    host = get_media_host()
    uploaded = host.upload_many(files, folder=f"work_log/{sr.track_number}")
    captions = fields.get('captions') or []
    if isinstance(captions, str):
        captions = [captions]
    media = []
    for i, m in enumerate(uploaded):
        media.append({
            'id': f"{sr.id}-{m['public_id']}",
            'url': m['url'],
            'public_id': m['public_id'],
            'type': m['type'],
            'caption': captions[i] if i < len(captions) else None,
        })
    try:
        entry = WorkLogEntry(
            description=description,
            detailed_note=detailed_note,
            media=media,
            author_email=current_email(),
            author_name=get_jwt().get('name'),
        )
        sr.work_log.append(entry)
        sr.touch()
        session.commit()
    except Exception:
        session.rollback()
        host.discard(media)
        raise
    return _work_log_json(entry) | {'media_count': len(media)}, 201, {'ETag': etag_for(sr)}


@sr_bp.get('/<int:request_id>/work-log')
@require_permissions('SR.READ')
def list_work_log(request_id: int):
    session = get_db()
    sr = get_request_or_404(session, request_id)
    return {'data': [_work_log_json(e) for e in sr.work_log]}


@sr_bp.delete('/<int:request_id>/work-log/<int:entry_id>')
@require_permissions('SR.WORKLOG')
@audit_log('SR.WORKLOG.DELETE', entity='ServiceRequest', entity_id_arg='request_id', meta_keys=['entry_id', 'author_email'])
def delete_work_log(request_id: int, entry_id: int):
    session = get_db()
    sr = load_for_write(session, request_id)
    entry = next((e for e in sr.work_log if e.id == entry_id), None)
    if not entry:
        abort(404)
    assert_author_or_supervisor(entry.author_email)
    media = list(entry.media or [])
    author = entry.author_email
    sr.work_log.remove(entry)
    sr.touch()
    session.commit()
    get_media_host().discard(media)
    return with_etag({'entry_id': entry_id, 'author_email': author, 'deleted': True}, sr)


# ---------- Customer log ---------- #

@sr_bp.get('/<int:request_id>/customer-log')
@require_permissions('SR.READ')
def list_customer_log(request_id: int):
    session = get_db()
    sr = get_request_or_404(session, request_id)
    return {'data': [customer_log_json(c) for c in reversed(sr.customer_log)]}


@sr_bp.post('/<int:request_id>/customer-log')
@require_permissions('SR.UPDATE')
@audit_log('SR.CUSTOMERLOG.ADD', entity='ServiceRequest', entity_id_arg='request_id', meta_keys=['id'])
def add_customer_log(request_id: int):
    session = get_db()
    sr = load_for_write(session, request_id)
    entry = add_customer_log_entry(session, sr, current_email())
    return customer_log_json(entry), 201


# ---------- Media fields ---------- #

@sr_bp.post('/<int:request_id>/media/<field>')
@require_permissions('SR.MEDIA')
@audit_log('SR.MEDIA.ADD', entity='ServiceRequest', entity_id_arg='request_id', meta_builder=lambda data, rv, a, kw: {'field': kw.get('field'), 'count': len(data.get('data', []))})
def add_media(request_id: int, field: str):
    if field not in MediaAsset.ALL_FIELDS:
        abort(404, description=f'Unknown media field {field}')
    session = get_db()
    sr = load_for_write(session, request_id)
    _, files = read_payload()
    if not files:
        abort(400, description='No file uploaded')
    host = get_media_host()
    uploaded = host.upload_many(files, folder=f"{field}/{sr.track_number}")
    try:
        assets = [
            MediaAsset(field=field, url=m['url'], public_id=m['public_id'], resource_type=m['type'], created_by=current_email())
            for m in uploaded
        ]
        sr.media_assets.extend(assets)
        sr.touch()
        session.commit()
    except Exception:
        session.rollback()
        host.discard(uploaded)
        raise
    return {'data': [media_json(a) for a in assets]}, 201, {'ETag': etag_for(sr)}


@sr_bp.delete('/<int:request_id>/media/<int:asset_id>')
@require_permissions('SR.MEDIA')
@audit_log('SR.MEDIA.DELETE', entity='ServiceRequest', entity_id_arg='request_id', meta_keys=['field', 'public_id'])
def delete_media(request_id: int, asset_id: int):
    session = get_db()
    sr = load_for_write(session, request_id)
    asset = next((a for a in sr.media_assets if a.id == asset_id), None)
    if not asset:
        abort(404)
    body = media_json(asset)
    sr.media_assets.remove(asset)
    sr.touch()
    session.commit()
    get_media_host().discard([{'public_id': body['public_id'], 'type': body['type']}])
    return with_etag(body, sr)


# ---------- Public view ---------- #

@sr_bp.post('/<int:request_id>/public-view')
@require_permissions('SR.UPDATE')
@audit_log('SR.PUBLICVIEW.ROTATE', entity='ServiceRequest', entity_id_key='id')
def rotate_public_view(request_id: int):
    """Issue a new customer link; the previous one stops working immediately."""
    session = get_db()
    sr = load_for_write(session, request_id)
    pv = issue_public_view(session, sr, current_app.config['PUBLIC_VIEW_TTL_DAYS'])
    sr.touch()
    session.commit()
    return {'id': sr.id, 'public_token': pv.token, 'expires_at': iso_z(pv.expires_at)}, 201, {'ETag': etag_for(sr)}
