from blescan.core.device_match import best_devices_for_hint, match_score
from blescan.core.model import DiscoveredDevice


def _device(identity: str, name: str, rssi: int = -50) -> DiscoveredDevice:
    return DiscoveredDevice(identity=identity, name=name, rssi=rssi)


def test_match_score_prefers_exact_address() -> None:
    device = _device("C4:7C:8D:6A:11:22", "Flower care")
    assert match_score(device, "c4:7c:8d:6a:11:22") == 3
    assert match_score(device, "6A:11") == 2
    assert match_score(device, "flower") == 1
    assert match_score(device, "thermometer") == 0


def test_exact_address_beats_name_matches() -> None:
    target = _device("AA:BB:CC:00:11:22", "Sensor")
    other = _device("AA:BB:CC:00:11:33", "Sensor AA:BB:CC:00:11:22")

    picked = best_devices_for_hint([other, target], "AA:BB:CC:00:11:22")
    assert picked == [target]


def test_ties_are_all_returned() -> None:
    first = _device("11:11:11:11:11:11", "Thermo Left")
    second = _device("22:22:22:22:22:22", "Thermo Right")

    assert best_devices_for_hint([first, second], "thermo") == [first, second]


def test_blank_hint_matches_nothing() -> None:
    assert best_devices_for_hint([_device("11:11:11:11:11:11", "Thermo")], "  ") == []
