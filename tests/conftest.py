import pytest

from docversion.config import VersioningConfig
from docversion.core.models import Author
from docversion.version.store import InMemoryVersionStore
from docversion.version.version_control import VersioningService


@pytest.fixture
def author():
    return Author(id="u-1", display_name="Ada")


@pytest.fixture
def store():
    return InMemoryVersionStore()


@pytest.fixture
def service(store):
    return VersioningService(store)


@pytest.fixture
def make_service(store):
    """Build a service over the shared store with custom settings."""
    def _make(**settings):
        return VersioningService(store, config=VersioningConfig(**settings))
    return _make
