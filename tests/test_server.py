import json
import socket

import pytest

from phiminerapi.rpc import MinerControl
from phiminerapi.server import ApiConnection, ApiServer, build_http_response
from phiminerapi.stats import Snapshot


class FakeControl(MinerControl):
    def __init__(self, fail_snapshot=False):
        self.fail_snapshot = fail_snapshot
        self.restarted = False

    def snapshot(self):
        if self.fail_snapshot:
            raise RuntimeError("no farm")
        return Snapshot(version="test-1.0", host_name="rig", connection_uri="stratum://pool")

    def shuffle(self):
        pass

    def restart(self):
        self.restarted = True

    def reboot(self, args):
        return True

    def get_connections(self):
        return []

    def add_connection(self, uri):
        pass

    def set_active_connection(self, target):
        pass

    def remove_connection(self, index):
        pass

    def get_nonce_scrambler_info(self):
        return {}

    def nonce_scrambler(self):
        return 0

    def segment_width(self):
        return 40

    def set_nonce_scrambler(self, nonce):
        pass

    def set_segment_width(self, width):
        pass

    def pause_miner(self, index, pause):
        return False


PING = b'{"id":1,"jsonrpc":"2.0","method":"miner_ping"}\n'
PONG = b'{"id":1,"jsonrpc":"2.0","result":"pong"}\n'


def make_connection(**kwargs):
    control = kwargs.pop("control", FakeControl())
    return ApiConnection(1, control, server_name="test-server", **kwargs)


def split_http(raw):
    head, body = raw.decode("utf-8").split("\r\n\r\n", 1)
    return head.split("\r\n"), body


def test_build_http_response_layout():
    text = build_http_response("HTTP/1.1", "404 Not Found", "srv", "text/plain", "abc")
    assert text == (
        "HTTP/1.1 404 Not Found\r\nServer: srv\r\nContent-Type: text/plain\r\n"
        "Content-Length: 3\r\n\r\nabc\r\n"
    )


def test_build_http_response_counts_utf8_bytes():
    text = build_http_response("HTTP/1.0", "200 Ok Error", "srv", "text/plain", "\u00e9")
    assert "Content-Length: 2\r\n" in text


def test_json_ping_line():
    conn = make_connection()
    assert conn.feed(PING) == PONG
    assert conn.closed is False


def test_partial_line_is_buffered():
    conn = make_connection()
    assert conn.feed(PING[:10]) == b""
    assert conn.feed(PING[10:]) == PONG


def test_short_message_waits():
    conn = make_connection()
    assert conn.feed(b"{") == b""


def test_two_lines_in_one_chunk():
    conn = make_connection()
    out = conn.feed(PING + b"\n" + PING)
    assert out == PONG + PONG


def test_invalid_json_line():
    conn = make_connection()
    reply = json.loads(conn.feed(b"not json at all\n"))
    assert reply["error"]["errorcode"] == "-32700"
    assert reply["id"] is None
    assert reply["error"]["message"].startswith("Json parse error : ")


def test_readonly_refuses_restart():
    control = FakeControl()
    conn = make_connection(control=control, readonly=True)
    reply = json.loads(conn.feed(b'{"id":2,"jsonrpc":"2.0","method":"miner_restart"}\n'))
    assert reply["error"] == {"code": -32601, "message": "Method not available"}
    assert control.restarted is False


def test_password_required():
    password = "password"
    conn = make_connection(password=password)
    reply = json.loads(conn.feed(PING))
    assert reply["error"]["code"] == -403
    auth = json.dumps(
        {"id": 3, "jsonrpc": "2.0", "method": "api_authorize", "params": {"psw": password}}
    )
    json.loads(conn.feed(auth.encode() + b"\n"))
    assert conn.feed(PING) == PONG


def test_http_get_status_page():
    conn = make_connection()
    raw = conn.feed(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")
    lines, body = split_http(raw)
    assert lines[0] == "HTTP/1.1 200 Ok Error"
    assert "Server: test-server" in lines
    assert "Content-Type: text/html; charset=utf-8" in lines
    assert body.startswith("<!doctype html>")
    assert body.endswith("\r\n")
    assert f"Content-Length: {len(body) - 2}" in lines
    assert conn.closed is True


def test_http_getstat1_path_supported():
    conn = make_connection()
    lines, _ = split_http(conn.feed(b"GET /getstat1 HTTP/1.0\r\n\r\n"))
    assert lines[0] == "HTTP/1.0 200 Ok Error"


def test_http_method_not_allowed():
    conn = make_connection()
    lines, body = split_http(conn.feed(b"POST / HTTP/1.1\r\n\r\n"))
    assert lines[0] == "HTTP/1.1 405 Method not allowed"
    assert body == "Method POST not allowed\r\n"
    assert conn.closed is True


def test_http_not_found():
    conn = make_connection()
    lines, body = split_http(conn.feed(b"GET /foo HTTP/1.1\r\n\r\n"))
    assert lines[0] == "HTTP/1.1 404 Not Found"
    assert body == "The requested resource /foo not found on this server\r\n"


def test_http_internal_error():
    conn = make_connection(control=FakeControl(fail_snapshot=True))
    lines, body = split_http(conn.feed(b"GET / HTTP/1.1\r\n\r\n"))
    assert lines[0] == "HTTP/1.1 500 Internal Server Error"
    assert body == "Internal error : no farm\r\n"


def test_empty_feed_closes_and_ignores_later_data():
    conn = make_connection()
    assert conn.feed(b"") == b""
    assert conn.closed is True
    assert conn.feed(PING) == b""


def test_negative_port_means_readonly():
    server = ApiServer(FakeControl(), "127.0.0.1", -3333)
    assert server.readonly is True
    assert server.port == 3333


def test_port_zero_disables_server():
    server = ApiServer(FakeControl(), "127.0.0.1", 0)
    server.start()
    assert server.is_running is False
    assert server.bound_port is None


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


def _read_line(client):
    data = b""
    while not data.endswith(b"\n"):
        chunk = client.recv(4096)
        if not chunk:
            break
        data += chunk
    return data


def test_server_round_trip_over_socket():
    port = _free_port()
    with ApiServer(FakeControl(), "127.0.0.1", port) as server:
        assert server.is_running is True
        assert server.bound_port == port
        with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
            client.sendall(PING)
            assert _read_line(client) == PONG
    assert server.is_running is False


def test_server_http_closes_connection():
    port = _free_port()
    with ApiServer(FakeControl(), "127.0.0.1", port):
        with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
            client.sendall(b"GET /nope HTTP/1.1\r\n\r\n")
            received = b""
            while True:
                chunk = client.recv(4096)
                if not chunk:
                    break
                received += chunk
    assert received.startswith(b"HTTP/1.1 404 Not Found\r\n")


@pytest.mark.parametrize("port", [-1, 1])
def test_readonly_flag_follows_port_sign(port):
    assert ApiServer(FakeControl(), "127.0.0.1", port).readonly is (port < 0)