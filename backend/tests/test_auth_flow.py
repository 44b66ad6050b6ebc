from flask_jwt_extended import decode_token
from service_center import get_db
from service_center.models.authz import User
from tests.test_utils_seed import new_user, new_branch, unique
from tests.test_lifecycle_helpers import admin_headers, headers_for, staff_in_new_branch


def _login(client, email, password='Passw0rd'):
    return client.post('/iam/auth/login', json={'email': email, 'password': password})


def test_login_and_me(client, app_instance):
    with app_instance.app_context():
        branch = new_branch()
        user = new_user(role='staff', branch_id=branch.id)
        resp = _login(client, user.email.upper())
        assert resp.status_code == 200, resp.get_json()
        token = resp.get_json()['access_token']
        claims = decode_token(token)
        assert claims['role'] == 'staff' and claims['branch_ids'] == [branch.id]
        assert 'SR.READ' in claims['perms']
        # staff session lifetime defaults to 24h
        lifetime = claims['exp'] - claims['iat']
        assert lifetime == 24 * 3600
        me = client.get('/iam/auth/me', headers={'Authorization': f'Bearer {token}'})
        assert me.status_code == 200
        assert me.get_json()['email'] == user.email


def test_bad_credentials(client, app_instance):
    with app_instance.app_context():
        user = new_user()
        assert _login(client, user.email, 'wrong').status_code == 401
        assert client.post('/iam/auth/login', json={}).status_code == 400


def test_register_creates_pending_staff(client, app_instance):
    with app_instance.app_context():
        email = f"{unique('new')}@example.com"
        r = client.post('/iam/auth/register', json={'name': 'Dewi', 'email': email, 'password': 'Rahasia123'})
        assert r.status_code == 201, r.get_json()
        body = r.get_json()
        assert body['approved'] is False and body['role'] == 'staff'
        login = _login(client, email, 'Rahasia123').get_json()
        assert login['approved'] is False
        token = {'Authorization': f"Bearer {login['access_token']}"}
        assert client.get('/iam/auth/me', headers=token).status_code == 200
        denied = client.get('/service-requests', headers=token)
        assert denied.status_code == 403
        assert client.post('/iam/auth/register', json={'name': 'Dewi', 'email': email, 'password': 'Rahasia123'}).status_code == 409


def test_register_enforces_password_policy(client):
    r = client.post('/iam/auth/register', json={'name': 'Eko', 'email': f"{unique('weak')}@example.com", 'password': 'short'})
    assert r.status_code == 400
    errors = r.get_json()['error']['errors']
    assert 'Password minimal 8 karakter.' in errors
    assert 'Password harus mengandung huruf besar.' in errors
    assert 'Password harus mengandung angka.' in errors


def test_manager_approves_branch_staff(client, app_instance):
    with app_instance.app_context():
        branch, _, mheaders = staff_in_new_branch(role='manager')
        pending = new_user(role='staff', approved=False, branch_id=branch.id)
        listed = client.get('/iam/users?approved=false', headers=mheaders).get_json()['data']
        assert [u['id'] for u in listed] == [pending.id]
        r = client.post(f'/iam/users/{pending.id}/approve', headers=mheaders)
        assert r.status_code == 200 and r.get_json()['approved'] is True
        outsider = new_user(role='staff', approved=False, branch_id=new_branch().id)
        assert client.post(f'/iam/users/{outsider.id}/approve', headers=mheaders).status_code == 403


def test_role_changes(client, app_instance):
    with app_instance.app_context():
        headers = admin_headers()
        user = new_user(role='user', approved=False)
        assert client.post(f'/iam/users/{user.id}/approve', headers=headers).status_code == 400
        r = client.put(f'/iam/users/{user.id}/role', json={'role': 'manager'}, headers=headers)
        assert r.status_code == 200 and r.get_json()['role'] == 'manager'
        assert client.put(f'/iam/users/{user.id}/role', json={'role': 'superuser'}, headers=headers).status_code == 400
        branch, _, mheaders = staff_in_new_branch(role='manager')
        staff = new_user(role='staff', branch_id=branch.id)
        assert client.put(f'/iam/users/{staff.id}/role', json={'role': 'admin'}, headers=mheaders).status_code == 403


def test_cannot_demote_last_admin(client, app_instance):
    with app_instance.app_context():
        session = get_db()
        admins = session.query(User).filter_by(role='admin', approved=True).all()
        keep = admins[0] if admins else new_user(role='admin', prefix='admin')
        for extra in admins[1:]:
            extra.role = 'owner'
        session.commit()
        r = client.put(f'/iam/users/{keep.id}/role', json={'role': 'staff'}, headers=headers_for(keep))
        assert r.status_code == 400
        assert r.get_json()['error']['detail'] == 'Cannot remove last admin'


def test_bind_user_branch(client, app_instance):
    with app_instance.app_context():
        headers = admin_headers()
        user = new_user()
        branch = new_branch()
        r = client.put(f'/iam/users/{user.id}/branch', json={'branch_id': branch.id}, headers=headers)
        assert r.status_code == 200 and r.get_json()['branch_id'] == branch.id
        assert client.put(f'/iam/users/{user.id}/branch', json={'branch_id': 987654}, headers=headers).status_code == 400
