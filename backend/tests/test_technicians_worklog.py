import io
from tests.test_utils_seed import new_user, new_branch
from tests.test_lifecycle_helpers import staff_in_new_branch, create_request, headers_for


def _setup(client):
    branch, manager, mheaders = staff_in_new_branch(role='manager')
    rid = create_request(client, mheaders, branch.id)['id']
    return branch, manager, mheaders, rid


def test_assign_technicians_from_branch(client, app_instance):
    with app_instance.app_context():
        branch, manager, mheaders, rid = _setup(client)
        tech = new_user(role='staff', branch_id=branch.id, prefix='tech')
        candidates = client.get(f'/service-requests/{rid}/technicians/candidates', headers=mheaders).get_json()['data']
        emails = {c['email'] for c in candidates}
        assert tech.email in emails and manager.email in emails
        r = client.put(f'/service-requests/{rid}/technicians', json={'technicians': [tech.email.upper()]}, headers=mheaders)
        assert r.status_code == 200, r.get_json()
        assert r.get_json()['assigned_technicians'] == [tech.email]
        after = client.get(f'/service-requests/{rid}/technicians/candidates', headers=mheaders).get_json()['data']
        assert tech.email not in {c['email'] for c in after}
        listed = client.get(f'/service-requests?technician={tech.email}', headers=mheaders).get_json()['data']
        assert [row['id'] for row in listed] == [rid]


def test_ineligible_technicians_rejected(client, app_instance):
    with app_instance.app_context():
        branch, _, mheaders, rid = _setup(client)
        outsider = new_user(role='staff', branch_id=new_branch().id, prefix='outsider')
        pending = new_user(role='staff', approved=False, branch_id=branch.id, prefix='pending')
        unbound = new_user(role='staff', prefix='unbound')
        r = client.put(f'/service-requests/{rid}/technicians', json={'technicians': [outsider.email, pending.email, unbound.email]}, headers=mheaders)
        assert r.status_code == 400
        assert len(r.get_json()['error']['errors']) == 3
        r = client.put(f'/service-requests/{rid}/technicians', json={'technicians': []}, headers=mheaders)
        assert r.get_json()['error']['errors'] == ['Pilih minimal 1 teknisi.']


def test_staff_cannot_assign(client, app_instance):
    with app_instance.app_context():
        branch, _, _, rid = _setup(client)
        staff = new_user(role='staff', branch_id=branch.id)
        r = client.put(f'/service-requests/{rid}/technicians', json={'technicians': [staff.email]}, headers=headers_for(staff))
        assert r.status_code == 403


def test_work_log_entry_and_listing(client, app_instance):
    with app_instance.app_context():
        branch, _, _, rid = _setup(client)
        staff = new_user(role='staff', branch_id=branch.id, prefix='tech')
        h = headers_for(staff)
        r = client.post(f'/service-requests/{rid}/work-log', json={'description': 'Bongkar unit', 'detailed_note': 'Konektor LCD korosi'}, headers=h)
        assert r.status_code == 201, r.get_json()
        entry = r.get_json()
        assert entry['author_email'] == staff.email and entry['media'] == []
        r = client.post(f'/service-requests/{rid}/work-log', json={}, headers=h)
        assert r.status_code == 400
        listed = client.get(f'/service-requests/{rid}/work-log', headers=h).get_json()['data']
        assert [e['description'] for e in listed] == ['Bongkar unit']


def test_work_log_with_photo(client, app_instance, fake_uploader):
    with app_instance.app_context():
        branch, _, _, rid = _setup(client)
        staff = new_user(role='staff', branch_id=branch.id, prefix='tech')
        data = {
            'description': 'Foto kerusakan',
            'captions': 'Sebelum dibersihkan',
            'files': (io.BytesIO(b'jpg'), 'before.jpg', 'image/jpeg'),
        }
        r = client.post(f'/service-requests/{rid}/work-log', data=data, headers=headers_for(staff), content_type='multipart/form-data')
        assert r.status_code == 201, r.get_json()
        media = r.get_json()['media']
        assert len(media) == 1
        assert media[0]['caption'] == 'Sebelum dibersihkan'
        assert media[0]['url'].startswith('https://media.test/service_form/work_log/')


def test_only_author_or_supervisor_deletes_entry(client, app_instance):
    with app_instance.app_context():
        branch, _, mheaders, rid = _setup(client)
        author = new_user(role='staff', branch_id=branch.id, prefix='author')
        other = new_user(role='staff', branch_id=branch.id, prefix='other')
        eid = client.post(f'/service-requests/{rid}/work-log', json={'description': 'Cek daya'}, headers=headers_for(author)).get_json()['id']
        r = client.delete(f'/service-requests/{rid}/work-log/{eid}', headers=headers_for(other))
        assert r.status_code == 403
        r = client.delete(f'/service-requests/{rid}/work-log/{eid}', headers=mheaders)
        assert r.status_code == 200
        assert client.get(f'/service-requests/{rid}/work-log', headers=mheaders).get_json()['data'] == []
