import pytest
from fittrack.app import create_app, db, get_store

@pytest.fixture
def app():
    """Create application for the tests."""
    app = create_app('testing')

    with app.app_context():
        yield app
        get_store(app).close()
        db.session.remove()
        db.drop_all()

@pytest.fixture
def store(app):
    return get_store(app)

@pytest.fixture
def client(app):
    """Create a test client for the app."""
    return app.test_client()

@pytest.fixture
def register(client):
    """Register a user over the API and return its auth headers."""
    def _register(username='alice', password='secret'):
        response = client.post('/api/auth/register', json={
            'username': username,
            'password': password
        })
        assert response.status_code == 201
        token = response.get_json()['access_token']
        return {'Authorization': f'Bearer {token}'}
    return _register
