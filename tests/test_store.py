from wifi_telemetry.core.models import EMPTY_LINK_INFO, LinkInfo, MonitorSnapshot, PingHost
from wifi_telemetry.core.store import SeriesStore

LINK = LinkInfo(signal=-60.0, rx_rate=400.0, tx_rate=300.0, bandwidth=80.0)


def assert_aligned(store):
    n = len(store.timestamps)
    for series in (store.signal, store.rx_rate, store.tx_rate, store.bandwidth):
        assert len(series) == n
    for data in store.ping_data.values():
        assert len(data) == n


def test_append_row_records_link_and_host_values():
    store = SeriesStore()
    store.add_series("a")
    store.append_row(1000, LINK, {"a": 12.5})

    assert store.timestamps == [1000]
    assert store.signal == [-60.0]
    assert store.rx_rate == [400.0]
    assert store.tx_rate == [300.0]
    assert store.bandwidth == [80.0]
    assert store.ping_data == {"a": [12.5]}


def test_missing_readings_are_none_not_zero():
    store = SeriesStore()
    store.add_series("a")
    store.append_row(1000, EMPTY_LINK_INFO, {})

    assert store.signal == [None]
    assert store.bandwidth == [None]
    assert store.ping_data["a"] == [None]


def test_host_added_mid_run_is_backfilled():
    store = SeriesStore()
    store.add_series("a")
    for ts in (1000, 2000, 3000):
        store.append_row(ts, LINK, {"a": 1.0})

    store.add_series("b")
    assert store.ping_data["b"] == [None, None, None]

    store.append_row(4000, LINK, {"a": 1.0, "b": 2.0})
    assert store.ping_data["b"] == [None, None, None, 2.0]
    assert_aligned(store)


def test_add_remove_sequence_keeps_alignment():
    store = SeriesStore()
    ts = 0
    for action in ["+a", "tick", "+b", "tick", "-a", "tick", "+c", "tick", "-b"]:
        if action.startswith("+"):
            store.add_series(action[1:])
        elif action.startswith("-"):
            store.remove_series(action[1:])
        else:
            ts += 1000
            store.append_row(ts, LINK, {})
        assert_aligned(store)

    assert set(store.ping_data) == {"c"}


def test_remove_series_leaves_no_residue():
    store = SeriesStore()
    store.add_series("a")
    store.append_row(1000, LINK, {"a": 3.0})
    store.remove_series("a")
    store.remove_series("never-added")

    assert store.ping_data == {}
    assert store.snapshot().ping_data == {}


def test_timestamps_never_go_backwards():
    store = SeriesStore()
    store.append_row(5000, LINK)
    stored = store.append_row(4000, LINK)
    store.append_row(6000, LINK)

    assert stored == 5000
    assert store.timestamps == [5000, 5000, 6000]
    assert all(a <= b for a, b in zip(store.timestamps, store.timestamps[1:]))


def test_clear_keeps_registered_hosts_with_empty_series():
    store = SeriesStore()
    store.add_series("a")
    store.add_series("b")
    store.append_row(1000, LINK, {"a": 1.0, "b": 2.0})

    store.clear(["a", "b"])

    assert len(store) == 0
    assert store.signal == []
    assert store.ping_data == {"a": [], "b": []}


def test_snapshot_is_independent_of_store():
    store = SeriesStore()
    store.add_series("a")
    store.append_row(1000, LINK, {"a": 1.0})

    snap = store.snapshot()
    snap.timestamps.append(99)
    snap.ping_data["a"].append(99)
    store.append_row(2000, LINK, {"a": 2.0})

    assert snap.timestamps == [1000, 99]
    assert store.timestamps == [1000, 2000]
    assert store.ping_data["a"] == [1.0, 2.0]


def test_snapshot_wire_format():
    store = SeriesStore()
    store.add_series("a")
    store.append_row(1000, LINK, {"a": None})

    wire = store.snapshot().to_dict()
    assert wire == {
        "timestamps": [1000],
        "signal": [-60.0],
        "rxRate": [400.0],
        "txRate": [300.0],
        "bandwidth": [80.0],
        "pingData": {"a": [None]},
    }
    assert MonitorSnapshot.from_dict(wire) == store.snapshot()



def test_link_info_wire_format():
    assert LINK.to_dict() == {
        "signal": -60.0,
        "rxRate": 400.0,
        "txRate": 300.0,
        "bandwidth": 80.0,
    }
    assert EMPTY_LINK_INFO.to_dict() == {
        "signal": None,
        "rxRate": None,
        "txRate": None,
        "bandwidth": None,
    }


def test_host_wire_format():
    host = PingHost("192.168.1.1", "gateway", latest=3.5, is_gateway=True, id="host-gw")

    assert host.to_dict() == {
        "id": "host-gw",
        "host": "192.168.1.1",
        "label": "gateway",
        "enabled": True,
        "latest": 3.5,
        "isGateway": True,
    }

def test_max_points_trims_every_series_together():
    store = SeriesStore(max_points=3)
    store.add_series("a")
    for i in range(5):
        store.append_row(i * 1000, LINK, {"a": float(i)})

    assert store.timestamps == [2000, 3000, 4000]
    assert store.ping_data["a"] == [2.0, 3.0, 4.0]
    assert_aligned(store)
