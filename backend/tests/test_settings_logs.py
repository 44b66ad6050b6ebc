from service_center import get_db
from service_center.models.setting import Setting
from service_center.services.settings import SECURITY_DEFAULTS, SECURITY_KEY
from tests.test_lifecycle_helpers import admin_headers, staff_in_new_branch, create_request


def _reset_settings():
    session = get_db()
    row = session.get(Setting, SECURITY_KEY)
    if row is not None:
        session.delete(row)
        session.commit()


def test_security_settings_public_read(client, app_instance):
    with app_instance.app_context():
        _reset_settings()
    body = client.get('/settings/security').get_json()
    assert body == SECURITY_DEFAULTS


def test_update_security_settings(client, app_instance):
    with app_instance.app_context():
        headers = admin_headers()
        try:
            r = client.put('/settings/security', json={'passwordLength': 10, 'requireSymbols': True}, headers=headers)
            assert r.status_code == 200, r.get_json()
            body = client.get('/settings/security').get_json()
            assert body['passwordLength'] == 10 and body['requireSymbols'] is True
            assert body['requireUppercase'] is True
            weak = client.post('/iam/auth/register', json={'name': 'Sari', 'email': 'sari-policy@example.com', 'password': 'Abcdefg12'})
            assert weak.status_code == 400
            errors = weak.get_json()['error']['errors']
            assert 'Password minimal 10 karakter.' in errors
            assert 'Password harus mengandung simbol.' in errors
        finally:
            _reset_settings()


def test_update_security_settings_validation(client, app_instance):
    with app_instance.app_context():
        headers = admin_headers()
        r = client.put('/settings/security', json={'passwordLength': 2, 'enforceMfa': 'yes', 'colour': 'blue'}, headers=headers)
        assert r.status_code == 400
        errors = r.get_json()['error']['errors']
        assert 'Unknown settings: colour' in errors
        assert 'enforceMfa must be true or false' in errors
        assert 'passwordLength must be an integer between 6 and 64' in errors
        _, _, staff = staff_in_new_branch()
        assert client.put('/settings/security', json={'passwordLength': 8}, headers=staff).status_code == 403


def test_admin_logs_filtering(client, app_instance):
    with app_instance.app_context():
        headers = admin_headers()
        branch, user, sheaders = staff_in_new_branch()
        rid = create_request(client, sheaders, branch.id)['id']
        client.post(f'/service-requests/{rid}/status', json={'status': 'diterima'}, headers=sheaders)
        r = client.get(f'/admin/logs?entity=ServiceRequest&entity_id={rid}&actor={user.email}', headers=headers)
        assert r.status_code == 200
        rows = r.get_json()['data']
        assert [row['action'] for row in rows] == ['SR.STATUS.UPDATE', 'SR.CREATE']
        assert rows[0]['actor_email'] == user.email
        assert rows[0]['meta']['changes']['status'] == {'before': 'pending', 'after': 'diterima'}
        prefixed = client.get(f'/admin/logs?action=SR.STATUS&entity_id={rid}&actor={user.email}', headers=headers).get_json()['data']
        assert [row['action'] for row in prefixed] == ['SR.STATUS.UPDATE']
        by_actor = client.get(f'/admin/logs?actor={user.email}', headers=headers).get_json()['data']
        assert by_actor and all(row['actor_email'] == user.email for row in by_actor)


def test_manager_cannot_read_logs(client, app_instance):
    with app_instance.app_context():
        _, _, headers = staff_in_new_branch(role='manager')
        assert client.get('/admin/logs', headers=headers).status_code == 403
