import pytest

from opensubtitles_rest.client import OpenSubtitlesClient

from .fakes import API_BASE, FakeTransport


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(transport):
    return OpenSubtitlesClient(api_key='test-api-key', transport=transport, base_url=API_BASE,
                               user_agent='TestAgent v1')
