"""JSON-RPC 2.0 request handling for the miner's monitoring and control API."""

from __future__ import annotations

import hmac
import json
from abc import ABC, abstractmethod
from typing import Any

from .log import LOG_NEXT, cnote, cwarn, default_settings
from .stats import Snapshot, miner_stat1, miner_stat_detail

__all__ = [
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "RpcError",
    "MinerControl",
    "RpcSession",
]

INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
UNPROCESSABLE = -422
UNAUTHORIZED = -401
FORBIDDEN = -403

_MAX_PASSWORD_LENGTH = 500
_MAX_UINT32 = (1 << 32) - 1
_MAX_UINT64 = (1 << 64) - 1


class RpcError(Exception):
    """An error that is reported back to the client in the response's ``error`` member."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def to_json(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class MinerControl(ABC):
    """What the API needs from the mining farm and the pool manager."""

    @abstractmethod
    def snapshot(self) -> Snapshot:
        """Current state of the farm for the status reports."""

    @abstractmethod
    def shuffle(self) -> None:
        """Give the nonce scrambler a new range."""

    @abstractmethod
    def restart(self) -> None:
        """Restart mining asynchronously."""

    @abstractmethod
    def reboot(self, args: list[str]) -> bool:
        """Run the reboot procedure with ``args``; tell whether it was started."""

    @abstractmethod
    def get_connections(self) -> Any:
        """JSON-ready list of the configured pool connections."""

    @abstractmethod
    def add_connection(self, uri: str) -> None:
        """Add a pool connection; raise if the URI is bad."""

    @abstractmethod
    def set_active_connection(self, target: int | str) -> None:
        """Switch to the connection with this index or URI; raise on failure."""

    @abstractmethod
    def remove_connection(self, index: int) -> None:
        """Remove the connection with this index; raise on failure."""

    @abstractmethod
    def get_nonce_scrambler_info(self) -> Any:
        """JSON-ready description of the nonce scrambler."""

    @abstractmethod
    def nonce_scrambler(self) -> int:
        """Current nonce scrambler value."""

    @abstractmethod
    def segment_width(self) -> int:
        """Current nonce segment width in bits."""

    @abstractmethod
    def set_nonce_scrambler(self, nonce: int) -> None:
        """Set the nonce scrambler value."""

    @abstractmethod
    def set_segment_width(self, width: int) -> None:
        """Set the nonce segment width in bits."""

    @abstractmethod
    def pause_miner(self, index: int, pause: bool) -> bool:
        """Pause or resume a miner on API request; False if there is no such miner."""


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (list, dict)) and not value)


def _is_uint(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return 0 <= value <= _MAX_UINT32
    if isinstance(value, float):
        return value.is_integer() and 0 <= value <= _MAX_UINT32
    return False


def _member(container: dict, name: str) -> Any:
    if name not in container:
        raise RpcError(INVALID_PARAMS, f"Missing '{name}'")
    return container[name]


def _invalid_type(name: str) -> RpcError:
    return RpcError(INVALID_PARAMS, f"Invalid type of value '{name}'")


def _get_bool(container: dict, name: str) -> bool:
    value = _member(container, name)
    if not isinstance(value, bool):
        raise _invalid_type(name)
    return value


def _get_uint(container: dict, name: str) -> int:
    value = _member(container, name)
    if not _is_uint(value):
        raise _invalid_type(name)
    return int(value)


def _get_uint64(container: dict, name: str) -> int:
    value = _member(container, name)
    if _is_empty(value):
        raise RpcError(INVALID_PARAMS, f"Empty '{name}'")
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)) and 0 <= value <= _MAX_UINT64:
        return int(value)
    raise RpcError(INVALID_PARAMS, f"Bad value in '{name}'")


def _get_object(container: dict, name: str) -> dict:
    value = _member(container, name)
    if value is not None and not isinstance(value, dict):
        raise _invalid_type(name)
    if _is_empty(value):
        raise RpcError(INVALID_PARAMS, f"Empty '{name}'")
    return value


def _get_string(container: dict, name: str) -> str:
    value = _member(container, name)
    if not isinstance(value, str):
        raise _invalid_type(name)
    return value


def _parse_id(request: dict) -> int | str:
    value = request.get("id")
    if "id" not in request or _is_empty(value):
        raise RpcError(INVALID_REQUEST, "Invalid Request (missing or empty id)")
    if _is_uint(value):
        return int(value)
    if isinstance(value, str):
        return value
    raise RpcError(INVALID_REQUEST, "Invalid Request (id has invalid type)")


def _parse_hex_nonce(text: str) -> int:
    digits = ""
    for char in text[2:]:
        if char not in "0123456789abcdefABCDEF":
            break
        digits += char
    value = int(digits, 16) if digits else 0
    if value > _MAX_UINT64:
        raise RpcError(UNPROCESSABLE, "Invalid nonce")
    return value


def _password_matches(given: str, expected: str) -> bool:
    def normalise(text: str) -> bytes:
        return text.encode("utf-8")[:_MAX_PASSWORD_LENGTH].ljust(_MAX_PASSWORD_LENGTH, b"\0")

    return hmac.compare_digest(normalise(given), normalise(expected))


def _fatal_response(errorcode: str, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": None,
        "error": {"errorcode": errorcode, "message": message},
    }


class RpcSession:
    """Per-connection request state: access mode and authentication."""

    def __init__(self, control: MinerControl, readonly: bool = False, password: str = "") -> None:
        self.control = control
        self.readonly = readonly
        self._password = password
        self._authenticated = not password

    @property
    def authenticated(self) -> bool:
        """Whether requests other than ``api_authorize`` are accepted."""
        return self._authenticated

    def process_request(self, request: Any) -> dict[str, Any]:
        """Handle one decoded request object and return the response object."""
        if not isinstance(request, dict):
            raise TypeError("request must be a JSON object")
        response: dict[str, Any] = {"jsonrpc": "2.0"}
        try:
            response["id"] = _parse_id(request)
        except RpcError as err:
            response["id"] = None
            response["error"] = err.to_json()
            return response

        try:
            method = self._parse_method(request)
            result_set, result = self._dispatch(method, request)
        except RpcError as err:
            response["error"] = err.to_json()
            return response
        if result_set:
            response["result"] = result
        return response

    def handle_line(self, line: str) -> dict[str, Any] | None:
        """Handle one line of the stream; None for a blank line."""
        line = line.strip()
        if not line:
            return None
        try:
            request = json.loads(line)
        except ValueError as exc:
            what = str(exc).replace("\n", " ")
            cwarn("API : Got invalid Json message ", what)
            return _fatal_response("-32700", "Json parse error : " + what)
        try:
            return self.process_request(request)
        except Exception as exc:
            return _fatal_response("500", str(exc))

    @staticmethod
    def _parse_method(request: dict) -> str:
        try:
            version = _get_string(request, "jsonrpc")
            if version != "2.0":
                raise RpcError(INVALID_REQUEST, "Invalid Request")
            return _get_string(request, "method")
        except RpcError:
            raise RpcError(INVALID_REQUEST, "Invalid Request") from None

    def _require_write(self) -> None:
        if self.readonly:
            raise RpcError(METHOD_NOT_FOUND, "Method not available")

    def _authorize(self, request: dict) -> None:
        self._authenticated = False
        params = _get_object(request, "params")
        given = _get_string(params, "psw")
        if _password_matches(given, self._password):
            self._authenticated = True
            return
        cwarn("API : Invalid password provided.")
        raise RpcError(UNAUTHORIZED, "Invalid password")

    def _dispatch(self, method: str, request: dict) -> tuple[bool, Any]:
        if not self._authenticated or method == "api_authorize":
            if method != "api_authorize":
                raise RpcError(FORBIDDEN, "Authorization needed")
            self._authorize(request)
            return False, None

        cnote("API : Method ", method, " requested")
        control = self.control

        if method == "miner_getstat1":
            return True, miner_stat1(control.snapshot())
        if method == "miner_getstatdetail":
            return True, miner_stat_detail(control.snapshot())
        if method == "miner_shuffle":
            control.shuffle()
            return True, True
        if method == "miner_ping":
            return True, "pong"
        if method == "miner_restart":
            self._require_write()
            control.restart()
            return True, True
        if method == "miner_reboot":
            self._require_write()
            return True, control.reboot(["api_miner_reboot"])
        if method == "miner_getconnections":
            return True, control.get_connections()
        if method == "miner_addconnection":
            return True, self._add_connection(request)
        if method == "miner_setactiveconnection":
            return True, self._set_active_connection(request)
        if method == "miner_removeconnection":
            return True, self._remove_connection(request)
        if method == "miner_getscramblerinfo":
            return True, control.get_nonce_scrambler_info()
        if method == "miner_setscramblerinfo":
            return True, self._set_scrambler_info(request)
        if method == "miner_pausegpu":
            return True, self._pause_gpu(request)
        if method == "miner_setverbosity":
            return True, self._set_verbosity(request)
        raise RpcError(METHOD_NOT_FOUND, "Method not found")

    def _add_connection(self, request: dict) -> bool:
        self._require_write()
        params = _get_object(request, "params")
        uri = _get_string(params, "uri")
        try:
            self.control.add_connection(uri)
        except Exception:
            raise RpcError(UNPROCESSABLE, "Bad URI : " + uri) from None
        return True

    def _set_active_connection(self, request: dict) -> bool:
        self._require_write()
        params = _get_object(request, "params")
        try:
            target: int | str = (
                _get_uint(params, "index") if "index" in params else _get_string(params, "URI")
            )
        except RpcError:
            raise RpcError(UNPROCESSABLE, "Invalid index") from None
        try:
            self.control.set_active_connection(target)
        except Exception as exc:
            raise RpcError(UNPROCESSABLE, str(exc)) from None
        return True

    def _remove_connection(self, request: dict) -> bool:
        self._require_write()
        params = _get_object(request, "params")
        index = _get_uint(params, "index")
        try:
            self.control.remove_connection(index)
        except Exception as exc:
            raise RpcError(UNPROCESSABLE, str(exc)) from None
        return True

    def _set_scrambler_info(self, request: dict) -> bool:
        self._require_write()
        params = _get_object(request, "params")
        nonce = self.control.nonce_scrambler()
        width = self.control.segment_width()
        provided = False

        if "noncescrambler" in params:
            provided = True
            raw = params["noncescrambler"]
            if isinstance(raw, str) and raw.startswith("0x"):
                nonce = _parse_hex_nonce(raw)
            else:
                nonce = _get_uint64(params, "noncescrambler")

        if "segmentwidth" in params:
            provided = True
            width = _get_uint(params, "segmentwidth")

        if not provided:
            raise RpcError(INVALID_PARAMS, "Missing parameters")

        if width < 10:
            width = 10
        if width > 50:
            width = 40
        self.control.set_nonce_scrambler(nonce)
        self.control.set_segment_width(width)
        return True

    def _pause_gpu(self, request: dict) -> bool:
        self._require_write()
        params = _get_object(request, "params")
        index = _get_uint(params, "index")
        pause = _get_bool(params, "pause")
        if not self.control.pause_miner(index, pause):
            raise RpcError(UNPROCESSABLE, "Index out of bounds")
        return True

    def _set_verbosity(self, request: dict) -> bool:
        self._require_write()
        params = _get_object(request, "params")
        verbosity = _get_uint(params, "verbosity")
        if verbosity >= LOG_NEXT:
            raise RpcError(UNPROCESSABLE, f"Verbosity out of bounds (0-{LOG_NEXT - 1})")
        cnote("Setting verbosity level to ", verbosity)
        default_settings.options = verbosity
        return True