from sqlalchemy import func, select
from service_center import get_db
from service_center.models.service_request import ServiceRequest
from service_center.services.track_number import next_track_number
from tests.test_utils_seed import new_branch, new_user
from tests.test_lifecycle_helpers import headers_for, intake_payload, create_request, staff_in_new_branch


def _count():
    return get_db().execute(select(func.count(ServiceRequest.id))).scalar_one()


def test_internal_intake_creates_pending_request(client, app_instance):
    with app_instance.app_context():
        branch, user, headers = staff_in_new_branch()
        body = create_request(client, headers, branch.id)
        assert body['track_number'].startswith('WO')
        assert body['status'] == 'pending'
        assert body['branch_id'] == branch.id
        assert body['no_hp'] == '6281234567890'
        assert body['garansi'] is False
        assert body['status_log'] == []
        assert body['public_token']
        assert body['total_biaya'] == 0 and body['dp'] == 0
        assert body['created_by'] == user.id


def test_intake_defaults_to_users_branch(client, app_instance):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        resp = client.post('/service-requests', json=intake_payload(), headers=headers)
        assert resp.status_code == 201, resp.get_json()
        assert resp.get_json()['branch_id'] == branch.id


def test_missing_fields_reports_every_problem_and_writes_nothing(client, app_instance):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        before = _count()
        resp = client.post('/service-requests', json=intake_payload(
            branch.id, nama='', email='  ', jenis_perangkat=[], kondisi=None), headers=headers)
        assert resp.status_code == 400
        errors = resp.get_json()['error']['errors']
        assert 'Nama wajib diisi.' in errors
        assert 'Email wajib diisi.' in errors
        assert 'Pilih minimal 1 jenis perangkat.' in errors
        assert 'Pilih minimal 1 kondisi perangkat.' in errors
        assert _count() == before


def test_invalid_phone_rejected(client, app_instance):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        resp = client.post('/service-requests', json=intake_payload(branch.id, no_hp='12345'), headers=headers)
        assert resp.status_code == 400
        assert any('Nomor HP' in e for e in resp.get_json()['error']['errors'])


def test_admin_must_choose_branch(client, app_instance):
    with app_instance.app_context():
        admin = new_user(role='admin', prefix='admin')
        resp = client.post('/service-requests', json=intake_payload(), headers=headers_for(admin))
        assert resp.status_code == 400
        assert 'Cabang wajib diisi.' in resp.get_json()['error']['errors']
        resp = client.post('/service-requests', json=intake_payload(987654), headers=headers_for(admin))
        assert 'Cabang tidak dikenal.' in resp.get_json()['error']['errors']


def test_scoped_staff_cannot_file_into_other_branch(client, app_instance):
    with app_instance.app_context():
        _, _, headers = staff_in_new_branch()
        other = new_branch()
        resp = client.post('/service-requests', json=intake_payload(other.id), headers=headers)
        assert resp.status_code == 403


def test_track_numbers_are_unique_and_increasing(client, app_instance):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        numbers = [create_request(client, headers, branch.id)['track_number'] for _ in range(3)]
        assert len(set(numbers)) == 3
        values = [int(n[2:]) for n in numbers]
        assert values == sorted(values)


def test_counter_seeds_from_existing_track_numbers(app_instance):
    with app_instance.app_context():
        session = get_db()
        highest = max(int(tn[2:]) for tn in session.execute(select(ServiceRequest.track_number)).scalars()
                      if tn.startswith('WO') and tn[2:].isdigit()) if _count() else 0
        tn = next_track_number(session)
        session.rollback()
        assert int(tn[2:]) > highest


def test_public_intake_is_anonymous(client, app_instance):
    with app_instance.app_context():
        branch = new_branch()
        resp = client.post('/public/intake', json=intake_payload(branch.id))
        assert resp.status_code == 201, resp.get_json()
        body = resp.get_json()
        assert body['status'] == 'pending'
        assert body['public_token']
        view = client.get(f"/public/{body['public_token']}")
        assert view.status_code == 200
        assert view.get_json()['track_number'] == body['track_number']


def test_public_intake_requires_branch(client):
    resp = client.post('/public/intake', json=intake_payload())
    assert resp.status_code == 400
    assert 'Cabang wajib diisi.' in resp.get_json()['error']['errors']


def test_unapproved_account_cannot_create(client, app_instance):
    with app_instance.app_context():
        branch = new_branch()
        user = new_user(role='staff', approved=False, branch_id=branch.id)
        resp = client.post('/service-requests', json=intake_payload(branch.id), headers=headers_for(user))
        assert resp.status_code == 403
        assert resp.get_json()['error']['detail'] == 'Account pending approval'
