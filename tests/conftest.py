import socket

import httpx
import pytest

from backend.core.observability.metrics import init_metrics

_blocked_calls: list[str] = []


def _blocked(name):
    def guard(*args, **kwargs):
        _blocked_calls.append(f"{name}{args[:1]}")
        raise RuntimeError(f"network access blocked in tests: {name}")

    return guard


@pytest.fixture(autouse=True, scope="session")
def no_network():
    """Tests reach validators and the API only through in-process transports.

    Sockets are refused outright; an ``httpx.Client`` must be built with an
    explicit non-network transport (``MockTransport``, ``TestClient``).
    """
    patched = {
        (socket, "getaddrinfo"): socket.getaddrinfo,
        (socket, "create_connection"): socket.create_connection,
        (httpx.Client, "__init__"): httpx.Client.__init__,
    }
    real_client_init = httpx.Client.__init__

    def client_init(self, *args, **kwargs):
        transport = kwargs.get("transport")
        if transport is None or isinstance(transport, httpx.HTTPTransport):
            _blocked_calls.append("httpx.Client")
            raise RuntimeError("network access blocked in tests: httpx.Client without mock transport")
        real_client_init(self, *args, **kwargs)

    socket.getaddrinfo = _blocked("getaddrinfo")
    socket.create_connection = _blocked("create_connection")
    httpx.Client.__init__ = client_init

    yield

    for (owner, attr), original in patched.items():
        setattr(owner, attr, original)
    assert not _blocked_calls, f"tests attempted network access: {_blocked_calls}"


@pytest.fixture(autouse=True)
def reset_metrics():
    init_metrics()
    yield
