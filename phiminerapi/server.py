"""TCP front end for the miner API: JSON-RPC lines and a small HTTP status page."""

from __future__ import annotations

import codecs
import json
import re
import socket
import threading
from typing import Any

from .log import cnote, cwarn
from .rpc import MinerControl, RpcSession
from .stats import miner_stat_detail, render_stat_detail_html

__all__ = ["DEFAULT_SERVER_NAME", "build_http_response", "ApiConnection", "ApiServer"]

DEFAULT_SERVER_NAME = "phiminer-api"

_HTTP_PATTERN = re.compile(r"([A-Z]{1,6}) (/\S*) (HTTP/1\.[0-9])")
_SUPPORTED_PATHS = ("/", "/getstat1")
_POLL_INTERVAL = 0.2
_RECV_SIZE = 4096


def build_http_response(
    version: str, status: str, server_name: str, content_type: str, body: str
) -> str:
    """Compose a complete HTTP response whose Content-Length counts the body's UTF-8 bytes."""
    length = len(body.encode("utf-8"))
    return (
        f"{version} {status}\r\n"
        f"Server: {server_name}\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {length}\r\n\r\n"
        f"{body}\r\n"
    )


def _encode_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":")) + "\n"


class ApiConnection:
    """Protocol state of one client connection, independent of any socket.

    :meth:`feed` takes received bytes and returns the bytes to send back.
    Once :attr:`closed` is true the connection should be shut down.
    """

    def __init__(
        self,
        session_id: int,
        control: MinerControl,
        readonly: bool = False,
        password: str = "",
        server_name: str = DEFAULT_SERVER_NAME,
    ) -> None:
        self.session_id = session_id
        self.control = control
        self.server_name = server_name
        self.session = RpcSession(control, readonly, password)
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._message = ""
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the connection has finished and must be disconnected."""
        return self._closed

    def feed(self, data: bytes) -> bytes:
        """Consume received bytes; empty data means the peer went away."""
        if self._closed:
            return b""
        if not data:
            self._closed = True
            return b""
        self._message += self._decoder.decode(data)
        if len(self._message) < 4:
            return b""

        match = _HTTP_PATTERN.match(self._message)
        if match:
            self._message = ""
            self._closed = True
            return self._http_reply(*match.groups()).encode("utf-8")
        return self._process_lines().encode("utf-8")

    def _http_reply(self, method: str, path: str, version: str) -> str:
        if method != "GET":
            return build_http_response(
                version,
                "405 Method not allowed",
                self.server_name,
                "text/plain",
                f"Method {method} not allowed",
            )
        if path not in _SUPPORTED_PATHS:
            return build_http_response(
                version,
                "404 Not Found",
                self.server_name,
                "text/plain",
                f"The requested resource {path} not found on this server",
            )
        try:
            body = render_stat_detail_html(miner_stat_detail(self.control.snapshot()))
        except Exception as exc:
            return build_http_response(
                version,
                "500 Internal Server Error",
                self.server_name,
                "text/plain",
                f"Internal error : {exc}",
            )
        return build_http_response(
            version, "200 Ok Error", self.server_name, "text/html; charset=utf-8", body
        )

    def _process_lines(self) -> str:
        replies = []
        while "\n" in self._message:
            line, self._message = self._message.split("\n", 1)
            response = self.session.handle_line(line)
            if response is not None:
                replies.append(_encode_json(response))
        return "".join(replies)


class ApiServer:
    """Listens for API clients and serves each one on its own thread.

    A negative port makes the API read-only on the absolute port number;
    port zero disables the server.
    """

    def __init__(
        self,
        control: MinerControl,
        address: str = "0.0.0.0",
        port: int = 0,
        password: str = "",
        server_name: str = DEFAULT_SERVER_NAME,
    ) -> None:
        self.control = control
        self.address = address
        self.port = abs(port)
        self._readonly = port < 0
        self._password = password
        self.server_name = server_name
        self._listener: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None
        self._running = threading.Event()
        self._lock = threading.Lock()
        self._last_session_id = 0
        self._sessions: dict[int, tuple[ApiConnection, socket.socket, threading.Thread]] = {}

    @property
    def is_running(self) -> bool:
        """Whether the server is accepting connections."""
        return self._running.is_set()

    @property
    def readonly(self) -> bool:
        """Whether write methods are refused."""
        return self._readonly

    @property
    def bound_port(self) -> int | None:
        """The port actually listened on, or None when not started."""
        if self._listener is None:
            return None
        return self._listener.getsockname()[1]

    def start(self) -> None:
        """Bind and start accepting; a port in use is reported and leaves the server stopped."""
        if self.port == 0 or self.is_running:
            return
        family = socket.AF_INET6 if ":" in self.address else socket.AF_INET
        listener = socket.socket(family, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind((self.address, self.port))
            listener.listen(64)
        except OSError:
            listener.close()
            cwarn(f"Could not start API server on port: {self.port}")
            cwarn("Ensure port is not in use by another service")
            return
        listener.settimeout(_POLL_INTERVAL)
        self._listener = listener
        suffix = "." if not self._password else ". Authentication needed."
        cnote(f"Api server listening on port {self.bound_port}", suffix)
        self._running.set()
        self._accept_thread = threading.Thread(
            target=self._accept_loop, name="api-accept", daemon=True
        )
        self._accept_thread.start()

    def stop(self) -> None:
        """Stop accepting, close every session and wait for the threads."""
        if not self.is_running:
            return
        self._running.clear()
        if self._accept_thread is not None:
            self._accept_thread.join()
            self._accept_thread = None
        if self._listener is not None:
            self._listener.close()
            self._listener = None
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for _, _, thread in sessions:
            thread.join()

    def _accept_loop(self) -> None:
        listener = self._listener
        assert listener is not None
        while self._running.is_set():
            try:
                client, peer = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            with self._lock:
                self._last_session_id += 1
                session_id = self._last_session_id
                connection = ApiConnection(
                    session_id, self.control, self._readonly, self._password, self.server_name
                )
                thread = threading.Thread(
                    target=self._serve,
                    args=(connection, client),
                    name=f"api-{session_id}",
                    daemon=True,
                )
                self._sessions[session_id] = (connection, client, thread)
            cnote("New API session from ", f"{peer[0]}:{peer[1]}")
            thread.start()

    def _serve(self, connection: ApiConnection, client: socket.socket) -> None:
        client.settimeout(_POLL_INTERVAL)
        try:
            while self._running.is_set() and not connection.closed:
                try:
                    data = client.recv(_RECV_SIZE)
                except socket.timeout:
                    continue
                except OSError:
                    break
                reply = connection.feed(data)
                if reply:
                    try:
                        client.sendall(reply)
                    except OSError:
                        break
        finally:
            try:
                client.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            client.close()
            with self._lock:
                self._sessions.pop(connection.session_id, None)

    def __enter__(self) -> ApiServer:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()