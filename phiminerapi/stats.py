"""Miner status reports: the legacy stat1 list, the detailed JSON-ready report and its HTML page."""

from __future__ import annotations

import socket
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .commondata import HexPrefix, get_formatted_hashes, get_formatted_memory, to_hex_int

__all__ = [
    "DeviceType",
    "SubscriptionType",
    "SolutionCounts",
    "SensorReadings",
    "MinerTelemetry",
    "Telemetry",
    "DeviceDescriptor",
    "MinerInfo",
    "Snapshot",
    "miner_stat1",
    "miner_stat_detail_per_miner",
    "miner_stat_detail",
    "render_stat_detail_html",
]

_MASK64 = (1 << 64) - 1
_MASK32 = (1 << 32) - 1

_HDR0_COLOR = "#e8e8e8"
_HDR1_COLOR = "#f0f0f0"
_ROW0_COLOR = "#f8f8f8"
_ROW1_COLOR = "#ffffff"
_ROWRED_COLOR = "#f46542"


class DeviceType(Enum):
    """Kind of mining device."""

    UNKNOWN = "unknown"
    CPU = "cpu"
    GPU = "gpu"
    ACCELERATOR = "accelerator"


class SubscriptionType(Enum):
    """Which compute backend drives a device."""

    NONE = "none"
    OPENCL = "opencl"
    CUDA = "cuda"
    CPU = "cpu"


@dataclass
class SolutionCounts:
    """Share counters; ``tstamp`` is the monotonic time of the last found share."""

    accepted: int = 0
    rejected: int = 0
    failed: int = 0
    tstamp: float = 0.0


@dataclass
class SensorReadings:
    """Temperature in Celsius, fan speed in percent and power in watts."""

    temp_c: int = 0
    fan_p: int = 0
    power_w: float = 0.0


@dataclass
class MinerTelemetry:
    """Hash rate in hashes per second, with share counts and sensors."""

    hashrate: float = 0.0
    solutions: SolutionCounts = field(default_factory=SolutionCounts)
    sensors: SensorReadings = field(default_factory=SensorReadings)


@dataclass
class Telemetry:
    """Farm-wide and per-miner telemetry; ``start`` is a monotonic time."""

    start: float = 0.0
    farm: MinerTelemetry = field(default_factory=MinerTelemetry)
    miners: list[MinerTelemetry] = field(default_factory=list)


@dataclass
class DeviceDescriptor:
    """Static description of a mining device."""

    unique_id: str = ""
    type: DeviceType = DeviceType.UNKNOWN
    subscription_type: SubscriptionType = SubscriptionType.NONE
    cl_detected: bool = False
    cl_name: str = ""
    cu_name: str = ""
    total_memory: int = 0


@dataclass
class MinerInfo:
    """A miner as seen by the status reports."""

    index: int
    descriptor: DeviceDescriptor = field(default_factory=DeviceDescriptor)
    paused: bool = False
    pause_reason: str = ""


def _local_host_name() -> str | None:
    try:
        return socket.gethostname()
    except OSError:
        return None


@dataclass
class Snapshot:
    """Everything the reports need from the farm and the pool manager at one moment."""

    version: str = ""
    telemetry: Telemetry = field(default_factory=Telemetry)
    miners: list[MinerInfo] = field(default_factory=list)
    connection_host: str = ""
    connection_port: int = 0
    connection_uri: str = ""
    connected: bool = False
    connection_switches: int = 0
    epoch: int = 0
    epoch_changes: int = 0
    difficulty: float = 0.0
    nonce_scrambler: int = 0
    segment_width: int = 40
    tstart: int = 0
    tstop: int = 0
    host_name: str | None = field(default_factory=_local_host_name)


def _now(now: float | None) -> float:
    return time.monotonic() if now is None else now


def miner_stat1(snapshot: Snapshot, now: float | None = None) -> list[str]:
    """The nine-field status list of the classic ``miner_getstat1`` call."""
    now = _now(now)
    t = snapshot.telemetry
    running_minutes = int((now - t.start) / 60)
    farm = t.farm

    total_eth = f"{farm.hashrate / 1000.0:.0f};{farm.solutions.accepted};{farm.solutions.rejected}"
    detailed_eth = ";".join(f"{m.hashrate / 1000.0:.0f}" for m in t.miners)
    detailed_dcr = ";".join("off" for _ in t.miners)
    temps_and_fans = ";".join(f"{m.sensors.temp_c};{m.sensors.fan_p}" for m in t.miners)
    pool = f"{snapshot.connection_host}:{snapshot.connection_port}"
    invalid = f"{farm.solutions.failed};0;0;0"

    return [
        snapshot.version,
        str(running_minutes),
        total_eth,
        detailed_eth,
        "0;0;0",
        detailed_dcr,
        temps_and_fans,
        pool,
        invalid,
    ]


def _type_name(device_type: DeviceType) -> str:
    if device_type is DeviceType.GPU:
        return "GPU"
    if device_type is DeviceType.ACCELERATOR:
        return "ACCELERATOR"
    return "CPU"


def _hashrate_hex(hashrate: float) -> str:
    return to_hex_int(int(hashrate) & _MASK32, HexPrefix.ADD, 8)


def miner_stat_detail_per_miner(
    snapshot: Snapshot, miner: MinerInfo, now: float | None = None
) -> dict[str, Any]:
    """Detailed status of one miner; raises IndexError if it has no telemetry."""
    now = _now(now)
    index = miner.index
    telemetry = snapshot.telemetry.miners[index]
    descriptor = miner.descriptor

    name = descriptor.cl_name if descriptor.cl_detected else descriptor.cu_name
    hardware = {
        "pci": descriptor.unique_id,
        "type": _type_name(descriptor.type),
        "name": f"{name} {get_formatted_memory(float(descriptor.total_memory))}",
        "sensors": [
            telemetry.sensors.temp_c,
            telemetry.sensors.fan_p,
            telemetry.sensors.power_w,
        ],
    }

    width = snapshot.segment_width
    start_nonce = (snapshot.nonce_scrambler + (index << width)) & _MASK64
    end_nonce = (start_nonce + (1 << width)) & _MASK64
    solutions = telemetry.solutions
    mining = {
        "shares": [
            solutions.accepted,
            solutions.rejected,
            solutions.failed,
            int(now - solutions.tstamp),
        ],
        "paused": miner.paused,
        "pause_reason": miner.pause_reason if miner.paused else None,
        "segment": [
            to_hex_int(start_nonce, HexPrefix.ADD),
            to_hex_int(end_nonce, HexPrefix.ADD),
        ],
        "hashrate": _hashrate_hex(telemetry.hashrate),
    }

    return {
        "_index": index,
        "_mode": "CUDA" if descriptor.subscription_type is SubscriptionType.CUDA else "OpenCL",
        "hardware": hardware,
        "mining": mining,
    }


def miner_stat_detail(snapshot: Snapshot, now: float | None = None) -> dict[str, Any]:
    """Farm-wide detailed status with one entry per miner."""
    now = _now(now)
    t = snapshot.telemetry

    host = {
        "version": snapshot.version,
        "runtime": int(now - t.start),
        "name": snapshot.host_name,
    }
    connection = {
        "uri": snapshot.connection_uri,
        "connected": snapshot.connected,
        "switches": snapshot.connection_switches,
    }
    farm_solutions = t.farm.solutions
    mining = {
        "hashrate": _hashrate_hex(t.farm.hashrate),
        "epoch": snapshot.epoch,
        "epoch_changes": snapshot.epoch_changes,
        "difficulty": snapshot.difficulty,
        "shares": [
            farm_solutions.accepted,
            farm_solutions.rejected,
            farm_solutions.failed,
            int(now - farm_solutions.tstamp),
        ],
    }
    monitors = (
        {"temperatures": [snapshot.tstart, snapshot.tstop]} if snapshot.tstop else None
    )
    devices = [miner_stat_detail_per_miner(snapshot, miner, now) for miner in snapshot.miners]

    return {
        "devices": devices,
        "monitors": monitors,
        "connection": connection,
        "host": host,
        "mining": mining,
    }


def _as_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        text = format(value, ".17g")
        if not any(c in text for c in ".eEni"):
            text += ".0"
        return text
    return str(value)


_HEADER_STYLE = (
    "<style>"
    "body{font-family:-apple-system,BlinkMacSystemFont,\"Segoe UI\",Roboto,"
    "\"Helvetica Neue\",Helvetica,Arial,sans-serif;font-size:16px;line-height:1.5;"
    "text-align:center;}"
    "table,td,th{border:1px inset #000;}"
    "table{border-spacing:0;}"
    "td,th{padding:3px;}"
    f"tbody tr:nth-child(even){{background-color:{_ROW0_COLOR};}}"
    f"tbody tr:nth-child(odd){{background-color:{_ROW1_COLOR};}}"
    ".mx-auto{margin-left:auto;margin-right:auto;}"
    f".bg-header1{{background-color:{_HDR1_COLOR};}}"
    f".bg-header0{{background-color:{_HDR0_COLOR};}}"
    f".bg-red{{color:{_ROWRED_COLOR};}}"
    ".right{text-align: right;}"
    "</style>"
)

_COLUMN_HEADERS = (
    "<tr class=bg-header0>"
    "<th>PCI</th>"
    "<th>Device</th>"
    "<th>Mode</th>"
    "<th>Paused</th>"
    "<th class=right>Hash Rate</th>"
    "<th class=right>Solutions</th>"
    "<th class=right>Temp.</th>"
    "<th class=right>Fan %</th>"
    "<th class=right>Power</th>"
    "</tr>"
)


def render_stat_detail_html(detail: dict[str, Any]) -> str:
    """Render a report from :func:`miner_stat_detail` as a self-refreshing HTML page."""
    host = detail["host"]
    runtime = int(host["runtime"])
    hours, remainder = divmod(runtime, 3600)
    minutes = remainder // 60

    parts = [
        "<!doctype html>",
        "<html lang=en>",
        "<head>",
        "<meta charset=utf-8>",
        "<meta http-equiv=\"refresh\" content=\"30\">",
        f"<title>{_as_string(host.get('name'))}</title>",
        _HEADER_STYLE,
        "<meta http-equiv=refresh content=30>",
        "</head>",
        "<body>",
        "<table class=mx-auto>",
        "<thead>",
        "<tr class=bg-header1>",
        f"<th colspan=9>{_as_string(host['version'])} - {hours}:{minutes:02d}"
        f"<br>Pool: {_as_string(detail['connection']['uri'])}</th>",
        "</tr>",
        _COLUMN_HEADERS,
        "</thead><tbody>",
    ]

    total_hashrate = 0.0
    total_power = 0.0
    total_solutions = 0
    for device in detail["devices"]:
        mining = device["mining"]
        hardware = device["hardware"]
        sensors = hardware["sensors"]
        hashrate = float(int(mining["hashrate"], 16))
        total_hashrate += hashrate
        total_power += float(sensors[2])
        total_solutions += int(mining["shares"][0])

        paused = bool(mining["paused"])
        parts.append("<tr class=\"bg-red\">" if paused else "<tr>")
        parts.append(f"<td>{_as_string(hardware['pci'])}</td>")
        parts.append(f"<td>{_as_string(hardware['name'])}</td>")
        parts.append(f"<td>{_as_string(device['_mode'])}</td>")
        reason = _as_string(mining["pause_reason"]) if paused else "No"
        parts.append(f"<td>{reason}</td>")
        parts.append(f"<td class=right>{get_formatted_hashes(hashrate)}</td>")
        parts.append(f"<td class=right>{_as_string(mining['shares'][0])}</td>")
        parts.extend(f"<td class=right>{_as_string(value)}</td>" for value in sensors[:3])
        parts.append("</tr>")
    parts.append("</tbody>")

    parts.append(
        "<tfoot><tr class=bg-header0><td colspan=4 class=right>Total</td><td class=right>"
        f"{get_formatted_hashes(total_hashrate)}</td><td class=right>{total_solutions}"
        f"</td><td colspan=3 class=right>{total_power:.2f}</td></tfoot>"
    )
    parts.append("</table></body></html>")
    return "".join(parts)