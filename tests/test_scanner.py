from wifi_telemetry.core.scanner import (
    CHANNELS_2_4GHZ,
    CHANNELS_5GHZ,
    freq_to_channel,
    get_channels_for_band,
    parse_scan_dump,
    scan_channels,
)

from conftest import THREE_NETWORKS, FakeScanSource


def test_counts_per_channel():
    scan = parse_scan_dump(THREE_NETWORKS, band="2.4", timestamp=1700000000)

    assert scan.band == "2.4"
    assert scan.timestamp == 1700000000
    assert scan.channels[6].count == 1
    assert scan.channels[6].networks == ["Alpha"]
    assert scan.channels[1].count == 1
    assert scan.channels[1].networks == ["Bravo"]
    # the 5GHz block is outside the band
    assert scan.total_networks == 2
    assert set(scan.channels) == set(CHANNELS_2_4GHZ)


def test_same_network_by_channel_and_frequency_counts_once():
    text = (
        "BSS 00:00:00:00:00:0a(on wlan0)\n"
        "\tDS Parameter set: channel 6\n"
        "\tSSID: Net1\n"
        "BSS 00:00:00:00:00:0b(on wlan0)\n"
        "\tfreq: 2437\n"
        "\tSSID: Net1\n"
        "BSS 00:00:00:00:00:0c(on wlan0)\n"
        "\tSSID: Net3\n"
    )
    scan = parse_scan_dump(text, band="2.4")

    assert scan.channels[6].count == 1
    assert scan.channels[6].networks == ["Net1"]
    assert scan.total_networks == 1


def test_every_band_channel_is_present_with_zero_default():
    scan = parse_scan_dump("", band="2.4")

    assert [scan.channels[ch].count for ch in CHANNELS_2_4GHZ] == [0] * len(CHANNELS_2_4GHZ)
    assert scan.total_networks == 0


def test_last_block_is_counted():
    text = "BSS 01\n\tfreq: 2462\n\tSSID: Last\n"
    scan = parse_scan_dump(text, band="2.4")

    assert scan.channels[11].count == 1
    assert scan.channels[11].networks == ["Last"]


def test_explicit_channel_wins_over_frequency():
    text = "BSS 01\n\tfreq: 2412\n\tDS Parameter set: channel 11\n\tSSID: Moved\n"
    scan = parse_scan_dump(text, band="2.4")

    assert scan.channels[11].count == 1
    assert scan.channels[1].count == 0


def test_duplicate_names_collapse_to_one_network():
    text = (
        "BSS 01\n\tfreq: 2437\n\tSSID: Mesh\n"
        "BSS 02\n\tfreq: 2437\n\tSSID: Mesh\n"
        "BSS 03\n\tfreq: 2437\n\tSSID: Other\n"
    )
    scan = parse_scan_dump(text, band="2.4")

    assert scan.channels[6].count == 2
    assert scan.channels[6].networks == ["Mesh", "Other"]


def test_hidden_networks_fall_back_to_raw_count():
    text = (
        "BSS 01\n\tfreq: 2437\n\tSSID: \n"
        "BSS 02\n\tfreq: 2437\n\tSSID: \\x00\\x00\\x00\n"
    )
    scan = parse_scan_dump(text, band="2.4")

    assert scan.channels[6].count == 2
    assert scan.channels[6].networks == []


def test_lines_before_first_block_are_ignored():
    text = "freq: 2437\nSSID: Ghost\nBSS 01\n\tfreq: 2412\n\tSSID: Real\n"
    scan = parse_scan_dump(text, band="2.4")

    assert scan.channels[6].count == 0
    assert scan.channels[1].networks == ["Real"]


def test_unresolvable_block_is_dropped():
    text = "BSS 01\n\tfreq: 2000\n\tSSID: Odd\nBSS 02\n\tSSID: NoFreq\n"
    scan = parse_scan_dump(text, band="2.4")

    assert scan.total_networks == 0


def test_5ghz_band_filters_2_4ghz_networks():
    scan = parse_scan_dump(THREE_NETWORKS, band="5")

    assert set(scan.channels) == set(CHANNELS_5GHZ)
    assert scan.channels[36].networks == ["Charlie"]
    assert scan.total_networks == 1


def test_freq_to_channel():
    assert freq_to_channel(2412) == 1
    assert freq_to_channel(2484) == 14
    assert freq_to_channel(5180.0) == 36
    assert freq_to_channel(5825) == 165
    assert freq_to_channel(3000) is None


def test_get_channels_for_band():
    assert get_channels_for_band("5") == CHANNELS_5GHZ
    assert get_channels_for_band("2.4") == CHANNELS_2_4GHZ


def test_scan_channels_refreshes_then_parses():
    source = FakeScanSource(THREE_NETWORKS)
    scan = scan_channels(source, "wlan0", band="2.4")

    assert source.refreshed == 1
    assert scan.channels[6].count == 1


def test_scan_channels_without_refresh():
    source = FakeScanSource(THREE_NETWORKS)
    scan_channels(source, "wlan0", refresh_cache=False)

    assert source.refreshed == 0


def test_scan_channels_returns_none_without_dump():
    assert scan_channels(FakeScanSource(None), "wlan0") is None
