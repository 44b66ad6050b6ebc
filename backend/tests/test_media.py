import io
import cloudinary
import pytest
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import BadRequest
from service_center import get_db
from service_center.models.service_request import ServiceRequest
from service_center.services.media_host import MediaHost, MediaHostError, validate_file, safe_folder
from tests.conftest import FakeUploader
from tests.test_lifecycle_helpers import staff_in_new_branch, create_request, admin_headers


def _jpg(name='foto.jpg', content=b'jpg'):
    return (io.BytesIO(content), name, 'image/jpeg')


def test_upload_passes_folder_and_resource_type(app_instance):
    uploader = FakeUploader()
    host = MediaHost('demo', 'key', 'secret', root_folder='service_form', timeout=12, uploader=uploader)
    with app_instance.test_request_context():
        out = host.upload(FileStorage(io.BytesIO(b'mp4'), 'unboxing clip.mp4', content_type='video/mp4'), 'intake/WO 1')
    action, options = uploader.calls[0]
    assert action == 'upload'
    assert options['folder'] == 'service_form/intake/WO1'
    assert options['resource_type'] == 'video' and options['timeout'] == 12
    assert options['public_id'].endswith('_unboxing_clip')
    assert out['type'] == 'video' and out['size'] == 3
    assert out['url'] == f"https://media.test/{out['public_id']}"
    assert host.destroy(out['public_id'], 'video') == 'ok'
    assert uploader.calls[-1][1]['resource_type'] == 'video'


def test_unconfigured_host_refuses_without_calling_sdk(app_instance):
    uploader = FakeUploader()
    host = MediaHost('', '', '', uploader=uploader)
    with app_instance.test_request_context():
        with pytest.raises(MediaHostError):
            host.upload(FileStorage(io.BytesIO(b'x'), 'a.png', content_type='image/png'))
    assert uploader.calls == []


def test_sdk_errors_become_media_host_errors():
    uploader = FakeUploader()
    uploader.down = True
    host = MediaHost('demo', 'key', 'secret', uploader=uploader)
    with pytest.raises(MediaHostError) as exc:
        host.destroy('service_form/x')
    assert 'connection refused' in str(exc.value)
    # discard never raises
    host.discard([{'public_id': 'service_form/x', 'type': 'image'}])


def test_configure_sets_sdk_credentials():
    MediaHost('demo-cloud', 'key-1', 'secret-1').configure()
    cfg = cloudinary.config()
    assert cfg.cloud_name == 'demo-cloud' and cfg.api_key == 'key-1' and cfg.secure is True


def test_validate_file_types_and_limits(app_instance):
    with app_instance.test_request_context():
        assert validate_file(FileStorage(io.BytesIO(b'x'), 'a.png', content_type='image/png')) == 'image'
        assert validate_file(FileStorage(io.BytesIO(b'x'), 'clip.mp4', content_type='application/octet-stream')) == 'video'
        with pytest.raises(BadRequest):
            validate_file(FileStorage(io.BytesIO(b'x'), 'doc.pdf', content_type='application/pdf'))
        big = FileStorage(io.BytesIO(b'0' * (10 * 1024 * 1024 + 1)), 'big.jpg', content_type='image/jpeg')
        with pytest.raises(BadRequest):
            validate_file(big)


def test_safe_folder():
    assert safe_folder('/work log/WO1/') == 'worklog/WO1'
    assert safe_folder('../../etc') == 'etc'
    assert safe_folder(None) == 'default'


def test_upload_to_request_field_and_delete(client, app_instance, fake_uploader):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        rid = create_request(client, headers, branch.id)['id']
        r = client.post(f'/service-requests/{rid}/media/handover_photo', data={'files': [_jpg('a.jpg'), _jpg('b.jpg')]},
                        headers=headers, content_type='multipart/form-data')
        assert r.status_code == 201, r.get_json()
        assets = r.get_json()['data']
        assert len(assets) == 2 and all(a['field'] == 'handover_photo' for a in assets)
        detail = client.get(f'/service-requests/{rid}', headers=headers).get_json()
        assert len(detail['media']['handover_photo']) == 2
        assert detail['media']['customer_signature'] == []
        r = client.delete(f"/service-requests/{rid}/media/{assets[0]['id']}", headers=headers)
        assert r.status_code == 200
        assert assets[0]['public_id'] in fake_uploader.destroyed()


def test_unknown_field_and_missing_file(client, app_instance, fake_uploader):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        rid = create_request(client, headers, branch.id)['id']
        r = client.post(f'/service-requests/{rid}/media/selfie', data={'files': [_jpg()]}, headers=headers, content_type='multipart/form-data')
        assert r.status_code == 404
        r = client.post(f'/service-requests/{rid}/media/pickup_photo', data={}, headers=headers, content_type='multipart/form-data')
        assert r.status_code == 400


def test_partial_upload_failure_removes_uploaded_files(client, app_instance, fake_uploader):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        rid = create_request(client, headers, branch.id)['id']
        fake_uploader.fail_uploads_after = 1
        r = client.post(f'/service-requests/{rid}/media/pickup_photo', data={'files': [_jpg('a.jpg'), _jpg('b.jpg')]},
                        headers=headers, content_type='multipart/form-data')
        assert r.status_code == 502
        assert r.get_json()['error']['detail'] == 'Upload quota exceeded'
        assert len(fake_uploader.destroyed()) == 1
        assert fake_uploader.stored == set()
        assert get_db().get(ServiceRequest, rid).media_assets == []


def test_media_host_unreachable_is_bad_gateway(client, app_instance, fake_uploader):
    with app_instance.app_context():
        fake_uploader.down = True
        r = client.post('/media/upload', data={'file': _jpg()}, headers=admin_headers(), content_type='multipart/form-data')
        assert r.status_code == 502


def test_standalone_upload_and_delete(client, app_instance, fake_uploader):
    with app_instance.app_context():
        headers = admin_headers()
        r = client.post('/media/upload', data={'file': _jpg(), 'folderPath': 'signatures'}, headers=headers, content_type='multipart/form-data')
        assert r.status_code == 201, r.get_json()
        body = r.get_json()
        assert body['success'] is True
        assert body['folder'] == 'service_form/signatures'
        r = client.post('/media/delete', json={'public_id': body['public_id']}, headers=headers)
        assert r.status_code == 200 and r.get_json()['result'] == 'ok'
        r = client.post('/media/delete', json={'public_id': body['public_id']}, headers=headers)
        assert r.status_code == 404
        assert client.post('/media/delete', json={}, headers=headers).status_code == 400


def test_deleting_request_removes_hosted_files(client, app_instance, fake_uploader):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        rid = create_request(client, headers, branch.id)['id']
        client.post(f'/service-requests/{rid}/media/customer_signature', data={'files': [_jpg('sig.png')]},
                    headers=headers, content_type='multipart/form-data')
        assert len(fake_uploader.stored) == 1
        r = client.delete(f'/service-requests/{rid}', headers=admin_headers())
        assert r.status_code == 200, r.get_json()
        assert r.get_json()['media_removed'] == 1
        assert fake_uploader.stored == set()
        assert get_db().get(ServiceRequest, rid) is None
