import pytest

from chat_rpc_bridge import LocalChannel, RPCClient, RPCServer

SERVER_ID = "1000"
CLIENT_ID = "2000"
BYSTANDER_ID = "3000"


@pytest.fixture
def timeout(request):
    """Timeout fixture that supports indirect parametrization."""
    return getattr(request, "param", 0.5)


@pytest.fixture
def channel():
    return LocalChannel("test")


@pytest.fixture
def server_transport(channel):
    transport = channel.connect(SERVER_ID)
    yield transport
    transport.close()


@pytest.fixture
def client_transport(channel):
    transport = channel.connect(CLIENT_ID)
    yield transport
    transport.close()


@pytest.fixture
def bystander_transport(channel):
    transport = channel.connect(BYSTANDER_ID)
    yield transport
    transport.close()


@pytest.fixture
def server(server_transport):
    server = RPCServer(server_transport, docs="  Bank API\n\nGET /balance/:userId  \n")
    yield server
    server.close()


@pytest.fixture
def client(client_transport, timeout):
    client = RPCClient(client_transport, SERVER_ID, timeout=timeout)
    yield client
    client.close()
