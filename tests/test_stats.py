import pytest

from phiminerapi.commondata import HexPrefix, get_formatted_hashes, get_formatted_memory, to_hex_int
from phiminerapi.stats import (
    DeviceDescriptor,
    DeviceType,
    MinerInfo,
    MinerTelemetry,
    SensorReadings,
    Snapshot,
    SolutionCounts,
    SubscriptionType,
    Telemetry,
    miner_stat1,
    miner_stat_detail,
    miner_stat_detail_per_miner,
    render_stat_detail_html,
)

START = 1000.0


def make_snapshot(**overrides):
    farm = MinerTelemetry(
        hashrate=42_000.0,
        solutions=SolutionCounts(accepted=7, rejected=2, failed=1, tstamp=START + 10),
    )
    miners_t = [
        MinerTelemetry(
            hashrate=30_000.0,
            solutions=SolutionCounts(accepted=4, rejected=1, failed=0, tstamp=START + 20),
            sensors=SensorReadings(temp_c=61, fan_p=45, power_w=100.5),
        ),
        MinerTelemetry(
            hashrate=12_000.0,
            solutions=SolutionCounts(accepted=3, rejected=1, failed=1, tstamp=START + 30),
            sensors=SensorReadings(temp_c=58, fan_p=40, power_w=50.25),
        ),
    ]
    miners = [
        MinerInfo(
            index=0,
            descriptor=DeviceDescriptor(
                unique_id="01:00.0",
                type=DeviceType.GPU,
                subscription_type=SubscriptionType.OPENCL,
                cl_detected=True,
                cl_name="TestCard",
                cu_name="CudaName",
                total_memory=8 * 1024**3,
            ),
        ),
        MinerInfo(
            index=1,
            descriptor=DeviceDescriptor(
                unique_id="02:00.0",
                type=DeviceType.GPU,
                subscription_type=SubscriptionType.CUDA,
                cl_detected=False,
                cl_name="",
                cu_name="OtherCard",
                total_memory=4 * 1024**3,
            ),
            paused=True,
            pause_reason="API request",
        ),
    ]
    values = dict(
        version="phiminer-test",
        telemetry=Telemetry(start=START, farm=farm, miners=miners_t),
        miners=miners,
        connection_host="pool.example.com",
        connection_port=4444,
        connection_uri="stratum://pool.example.com:4444",
        connected=True,
        connection_switches=3,
        epoch=12,
        epoch_changes=2,
        difficulty=4.5,
        nonce_scrambler=0x1234,
        segment_width=32,
        tstart=50,
        tstop=0,
        host_name="rig",
    )
    values.update(overrides)
    return Snapshot(**values)


def test_stat1_fixed_fields():
    snap = make_snapshot()
    result = miner_stat1(snap, now=START + 5)
    assert len(result) == 9
    assert result[0] == snap.version
    assert result[4] == "0;0;0"
    assert result[5] == ";".join(["off"] * len(snap.telemetry.miners))
    assert result[7] == f"{snap.connection_host}:{snap.connection_port}"
    assert result[8] == f"{snap.telemetry.farm.solutions.failed};0;0;0"


def test_stat1_runtime_in_whole_minutes():
    minutes = 7
    result = miner_stat1(make_snapshot(), now=START + minutes * 60 + 30)
    assert result[1] == str(minutes)


def test_stat1_hashrates_in_kilohashes():
    kh = 42
    snap = make_snapshot()
    snap.telemetry.farm.hashrate = kh * 1000.0
    snap.telemetry.miners[0].hashrate = 30 * 1000.0
    snap.telemetry.miners[1].hashrate = 12 * 1000.0
    result = miner_stat1(snap, now=START)
    sol = snap.telemetry.farm.solutions
    assert result[2] == f"{kh};{sol.accepted};{sol.rejected}"
    assert result[3] == f"{30};{12}"


def test_stat1_temperatures_and_fans():
    snap = make_snapshot()
    result = miner_stat1(snap, now=START)
    expected = ";".join(
        f"{m.sensors.temp_c};{m.sensors.fan_p}" for m in snap.telemetry.miners
    )
    assert result[6] == expected


def test_stat1_without_miners():
    snap = make_snapshot(miners=[])
    snap.telemetry.miners = []
    result = miner_stat1(snap, now=START)
    assert result[3] == ""
    assert result[5] == ""
    assert result[6] == ""


def test_per_miner_hardware_and_mode():
    snap = make_snapshot()
    miner = snap.miners[0]
    result = miner_stat_detail_per_miner(snap, miner, now=START + 100)
    assert result["_index"] == 0
    assert result["_mode"] == "OpenCL"
    hw = result["hardware"]
    assert hw["pci"] == miner.descriptor.unique_id
    assert hw["type"] == "GPU"
    assert hw["name"] == (
        f"{miner.descriptor.cl_name} {get_formatted_memory(float(miner.descriptor.total_memory))}"
    )
    sensors = snap.telemetry.miners[0].sensors
    assert hw["sensors"] == [sensors.temp_c, sensors.fan_p, sensors.power_w]


def test_per_miner_cuda_uses_cuda_name_and_pause_reason():
    snap = make_snapshot()
    miner = snap.miners[1]
    result = miner_stat_detail_per_miner(snap, miner, now=START + 100)
    assert result["_mode"] == "CUDA"
    assert result["hardware"]["name"].startswith(miner.descriptor.cu_name + " ")
    assert result["mining"]["paused"] is True
    assert result["mining"]["pause_reason"] == miner.pause_reason


def test_per_miner_unpaused_has_null_reason():
    snap = make_snapshot()
    result = miner_stat_detail_per_miner(snap, snap.miners[0], now=START)
    assert result["mining"]["paused"] is False
    assert result["mining"]["pause_reason"] is None


def test_per_miner_shares_age():
    snap = make_snapshot()
    age = 55
    sol = snap.telemetry.miners[0].solutions
    result = miner_stat_detail_per_miner(snap, snap.miners[0], now=sol.tstamp + age + 0.4)
    assert result["mining"]["shares"] == [sol.accepted, sol.rejected, sol.failed, age]


def test_per_miner_segment_spans_segment_width():
    snap = make_snapshot()
    for miner in snap.miners:
        seg = miner_stat_detail_per_miner(snap, miner, now=START)["mining"]["segment"]
        assert all(s.startswith("0x") and len(s) == 18 for s in seg)
        assert int(seg[1], 16) - int(seg[0], 16) == 1 << snap.segment_width
    first = miner_stat_detail_per_miner(snap, snap.miners[0], now=START)["mining"]["segment"]
    assert first[0] == to_hex_int(snap.nonce_scrambler, HexPrefix.ADD)


def test_per_miner_hashrate_hex():
    snap = make_snapshot()
    hexrate = miner_stat_detail_per_miner(snap, snap.miners[0], now=START)["mining"]["hashrate"]
    assert len(hexrate) == 10
    assert int(hexrate, 16) == int(snap.telemetry.miners[0].hashrate)


@pytest.mark.parametrize(
    "device_type, name",
    [
        (DeviceType.GPU, "GPU"),
        (DeviceType.ACCELERATOR, "ACCELERATOR"),
        (DeviceType.CPU, "CPU"),
        (DeviceType.UNKNOWN, "CPU"),
    ],
)
def test_device_type_names(device_type, name):
    snap = make_snapshot()
    snap.miners[0].descriptor.type = device_type
    result = miner_stat_detail_per_miner(snap, snap.miners[0], now=START)
    assert result["hardware"]["type"] == name


def test_per_miner_without_telemetry_raises():
    snap = make_snapshot()
    with pytest.raises(IndexError):
        miner_stat_detail_per_miner(snap, MinerInfo(index=5), now=START)


def test_detail_sections():
    snap = make_snapshot()
    runtime = 321
    detail = miner_stat_detail(snap, now=START + runtime)
    assert detail["host"] == {"version": snap.version, "runtime": runtime, "name": "rig"}
    assert detail["connection"] == {
        "uri": snap.connection_uri,
        "connected": True,
        "switches": snap.connection_switches,
    }
    mining = detail["mining"]
    assert mining["epoch"] == snap.epoch
    assert mining["epoch_changes"] == snap.epoch_changes
    assert mining["difficulty"] == snap.difficulty
    assert int(mining["hashrate"], 16) == int(snap.telemetry.farm.hashrate)
    assert [d["_index"] for d in detail["devices"]] == [0, 1]


def test_detail_monitors_only_with_stop_temperature():
    assert miner_stat_detail(make_snapshot(), now=START)["monitors"] is None
    snap = make_snapshot(tstart=50, tstop=80)
    assert miner_stat_detail(snap, now=START)["monitors"] == {"temperatures": [50, 80]}


def test_detail_missing_host_name():
    detail = miner_stat_detail(make_snapshot(host_name=None), now=START)
    assert detail["host"]["name"] is None


def test_html_structure():
    snap = make_snapshot()
    page = render_stat_detail_html(miner_stat_detail(snap, now=START + 10))
    assert page.startswith("<!doctype html><html lang=en><head>")
    assert page.endswith("</table></body></html>")
    assert "<title>rig</title>" in page
    assert f"<br>Pool: {snap.connection_uri}</th>" in page
    assert page.count("<tr class=\"bg-red\">") == 1
    assert "<td>No</td>" in page
    assert f"<td>{snap.miners[1].pause_reason}</td>" in page


def test_html_runtime_and_totals():
    snap = make_snapshot()
    detail = miner_stat_detail(snap, now=START + 3 * 3600 + 5 * 60 + 9)
    page = render_stat_detail_html(detail)
    assert f"{snap.version} - 3:05<br>" in page
    total = sum(int(m.hashrate) for m in snap.telemetry.miners)
    assert f"<td class=right>{get_formatted_hashes(float(total))}</td>" in page
    solutions = sum(m.solutions.accepted for m in snap.telemetry.miners)
    assert f"<td class=right>{solutions}</td><td colspan=3 class=right>150.75</td>" in page


def test_html_empty_title_without_host_name():
    page = render_stat_detail_html(miner_stat_detail(make_snapshot(host_name=None), now=START))
    assert "<title></title>" in page