import os

import pytest

from tests.clients.LocalMCPTestClient import LocalMCPTestClient

TEST_ACCESS_TOKEN = "test-access-token"


@pytest.fixture
def server_name(request):
    """Server under test, taken from the test's directory name"""
    return os.path.basename(os.path.dirname(request.node.fspath.strpath))


@pytest.fixture
def client(server_name):
    """Unconnected client for a server configured with a test access token"""
    return LocalMCPTestClient(server_name, api_key=TEST_ACCESS_TOKEN)


@pytest.fixture
def unauthenticated_client(server_name):
    """Unconnected client for a server with no access token available"""
    return LocalMCPTestClient(server_name)
