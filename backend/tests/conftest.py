import os, sys, pytest
import cloudinary.exceptions
# Ensure backend directory is on path so 'service_center' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from service_center import create_app, get_db
from service_center.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import service_center.models  # noqa: F401
from service_center.services.media_host import MediaHost


class FakeUploader:
    """Stands in for cloudinary.uploader: records calls and answers like the media host API."""

    def __init__(self):
        self.calls = []
        self.stored = set()
        self.fail_uploads_after = None
        self.down = False

    def upload(self, file, **options):
        self.calls.append(('upload', options))
        if self.down:
            raise cloudinary.exceptions.GeneralError('Unexpected error - connection refused')
        uploads = sum(1 for action, _ in self.calls if action == 'upload')
        if self.fail_uploads_after is not None and uploads > self.fail_uploads_after:
            raise cloudinary.exceptions.Error('Upload quota exceeded')
        public_id = f"{options['folder']}/{options['public_id']}"
        self.stored.add(public_id)
        return {
            'secure_url': f'https://media.test/{public_id}',
            'public_id': public_id,
            'width': 640,
            'height': 480,
            'bytes': len(file.read()),
        }

    def destroy(self, public_id, **options):
        self.calls.append(('destroy', dict(options, public_id=public_id)))
        if self.down:
            raise cloudinary.exceptions.GeneralError('Unexpected error - connection refused')
        if public_id in self.stored:
            self.stored.discard(public_id)
            return {'result': 'ok'}
        return {'result': 'not found'}

    def destroyed(self):
        return [o['public_id'] for action, o in self.calls if action == 'destroy']


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256', 'DP_MIN_AMOUNT': 100000})
    app.config['TESTING'] = True
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def fake_uploader(app_instance):
    """Swap the app's media host for one backed by FakeUploader; restored afterwards."""
    uploader = FakeUploader()
    original = app_instance.extensions['media_host']
    app_instance.extensions['media_host'] = MediaHost('demo', 'key', 'secret', uploader=uploader)
    yield uploader
    app_instance.extensions['media_host'] = original
