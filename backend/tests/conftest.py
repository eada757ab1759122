import os, sys, pytest
# Ensure backend directory is on path so 'erp' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from erp import create_app, get_db
from erp.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import erp.models.defaults  # noqa: F401
import erp.models.material  # noqa: F401
import erp.models.inventory  # noqa: F401
import erp.models.work_order  # noqa: F401
import erp.models.fuel  # noqa: F401
from tests.test_utils_seed import SETUP_KEY, STORAGE_LOCATIONS, ensure_defaults


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({
        'INITIAL_ADMIN_SETUP_KEY': SETUP_KEY,
        'PUBLIC_APP_URL': 'https://erp.example.com',
    })
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
        ensure_defaults(STORAGE_LOCATIONS)
    yield app

@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
