import asyncio
import inspect
import logging
import socket
import socketserver
import threading

import pytest


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        sig = inspect.signature(pyfuncitem.obj)
        kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in sig.parameters
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**kwargs))
        return True
    return None


class _Handler(socketserver.BaseRequestHandler):
    def handle(self):
        self.request.recv(1)


@pytest.fixture
def tcp_listener():
    """Yield the port of a TCP server accepting connections on 127.0.0.1."""

    with socketserver.ThreadingTCPServer(("127.0.0.1", 0), _Handler) as server:
        server.daemon_threads = True
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        try:
            yield server.server_address[1]
        finally:
            server.shutdown()
            thread.join()


@pytest.fixture
def closed_port():
    """Return a port on 127.0.0.1 that nothing listens on."""

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    named = {
        name: logging.getLogger(name).level
        for name in ("netsweep", "scapy.runtime", "scapy.loading")
    }
    yield
    for name, named_level in named.items():
        logging.getLogger(name).setLevel(named_level)
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
