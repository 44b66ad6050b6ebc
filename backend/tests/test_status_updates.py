from service_center import get_db
from service_center.models.service_request import ServiceRequest
from tests.test_lifecycle_helpers import staff_in_new_branch, create_request, assert_transition


def test_each_update_appends_exactly_one_entry(client, app_instance):
    with app_instance.app_context():
        branch, user, headers = staff_in_new_branch()
        sr = create_request(client, headers, branch.id)
        rid = sr['id']
        assert_transition(client, rid, headers, 'diterima', note='Unit diterima di counter')
        body = assert_transition(client, rid, headers, 'diagnosa').get_json()
        log = body['status_log']
        assert [e['status'] for e in log] == ['diterima', 'diagnosa']
        assert log[0]['note'] == 'Unit diterima di counter'
        assert log[0]['updated_by'] == user.email
        assert log[1]['note'] is None
        history = client.get(f'/service-requests/{rid}/status-log', headers=headers).get_json()
        assert len(history['data']) == 2
        assert 'menunggu_konfirmasi' in history['allowed_next']
        assert 'diterima' in history['allowed_next']


def test_earlier_entries_untouched(client, app_instance):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        rid = create_request(client, headers, branch.id)['id']
        first = assert_transition(client, rid, headers, 'diterima').get_json()['status_log'][0]
        later = assert_transition(client, rid, headers, 'proses_pengerjaan').get_json()['status_log']
        assert later[0] == first


def test_invalid_transitions_rejected(client, app_instance):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        rid = create_request(client, headers, branch.id)['id']
        assert_transition(client, rid, headers, 'pending', expected_status=400)
        assert_transition(client, rid, headers, 'bogus', expected_status=400)
        assert_transition(client, rid, headers, 'selesai')
        assert_transition(client, rid, headers, 'testing', expected_status=400)
        log = client.get(f'/service-requests/{rid}/status-log', headers=headers).get_json()
        assert [e['status'] for e in log['data']] == ['selesai']
        assert log['allowed_next'] == []


def test_status_required(client, app_instance):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        rid = create_request(client, headers, branch.id)['id']
        resp = client.post(f'/service-requests/{rid}/status', json={}, headers=headers)
        assert resp.status_code == 400


def test_legacy_spelling_accepted_and_stored_canonically(client, app_instance):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        rid = create_request(client, headers, branch.id)['id']
        resp = client.post(f'/service-requests/{rid}/status', json={'status': 'process'}, headers=headers)
        assert resp.status_code == 200, resp.get_json()
        assert get_db().get(ServiceRequest, rid).status == 'proses_pengerjaan'


def test_legacy_stored_status_filters_and_reads_canonical(client, app_instance):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        rid = create_request(client, headers, branch.id)['id']
        session = get_db()
        sr = session.get(ServiceRequest, rid)
        sr.status = 'ready'
        session.commit()
        listed = client.get('/service-requests?status=siap_diambil', headers=headers).get_json()['data']
        assert [r['id'] for r in listed] == [rid]
        assert listed[0]['status'] == 'siap_diambil'
        assert listed[0]['status_display']['label'] == 'Siap Diambil'
        assert_transition(client, rid, headers, 'selesai')


def test_status_update_is_audited(client, app_instance):
    from service_center.models.audit import AuditLog
    with app_instance.app_context():
        branch, user, headers = staff_in_new_branch()
        rid = create_request(client, headers, branch.id)['id']
        assert_transition(client, rid, headers, 'diterima')
        row = get_db().query(AuditLog).filter_by(action='SR.STATUS.UPDATE', entity_id=str(rid)).one()
        assert row.actor_email == user.email
        assert row.meta['changes']['status'] == {'before': 'pending', 'after': 'diterima'}
