"""Pytest configuration and fixtures for tests."""

import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    """Isolated storage root per test."""
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture
def layout(storage_root):
    """PackageLayout over the test storage root."""
    from apps.registry.storage import PackageLayout

    return PackageLayout(storage_root)


@pytest.fixture
def metadata_store(layout):
    """MetadataStore over the test storage root."""
    from apps.registry.storage import MetadataStore

    return MetadataStore(layout)


@pytest.fixture
def artifact_store(layout):
    """ArtifactStore sharing the metadata store's layout."""
    from apps.registry.storage import ArtifactStore

    return ArtifactStore(layout, chunk_size=4)


@pytest.fixture
def coordinator(metadata_store, artifact_store):
    """UploadCoordinator wired to the test stores."""
    from apps.registry.storage import UploadCoordinator

    return UploadCoordinator(metadata_store, artifact_store)


@pytest.fixture
def registry_settings(storage_root, tmp_path):
    """Settings for an app instance using the test storage root."""
    from apps.registry.config import RegistrySettings

    return RegistrySettings(
        storage_dir=storage_root,
        registry_token="test-token",
        token_file=tmp_path / "token",
        max_tarball_bytes=1024,
        max_metadata_bytes=2048,
    )


@pytest.fixture
def client(registry_settings):
    """TestClient for the registry app; lifespan runs inside the context."""
    from fastapi.testclient import TestClient

    from apps.registry.main import create_app

    with TestClient(create_app(registry_settings), base_url="http://registry.test") as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    """Authorization header carrying the test token."""
    return {"Authorization": "Bearer test-token"}
