import os
import tempfile

# Keep the module-level app (imagegate.app.main:app) away from the real
# environment: no upstream keys, no uploads in the working tree.
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="imagegate-uploads-"))
os.environ.setdefault("IMAGE_PROVIDER", "mock")

import pytest
from fastapi.testclient import TestClient

from imagegate.app.core.config import Settings
from imagegate.app.main import create_app
from imagegate.app.providers.mock import MockImageProvider


@pytest.fixture
def app_settings(tmp_path):
    return Settings(
        _env_file=None,
        image_provider="mock",
        upload_dir=tmp_path / "uploads",
        app_url="http://images.example.com",
        disable_rate_limit=False,
    )


@pytest.fixture
def mock_provider():
    return MockImageProvider()


@pytest.fixture
def make_client(app_settings, mock_provider):
    """Build a started TestClient; keyword arguments override settings."""
    clients = []

    def _make(provider=None, governor=None, **overrides):
        settings = app_settings.model_copy(update=overrides) if overrides else app_settings
        app = create_app(settings, provider=provider or mock_provider, governor=governor)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
