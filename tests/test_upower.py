from unittest.mock import MagicMock

from controller_tools.battery.upower import get_battery_percentage_from_upower


def _bus(devices):
    bus = MagicMock()
    upower = MagicMock()
    upower.EnumerateDevices.return_value = list(devices)

    def get_proxy(service, path, interface=None):
        if path == "/org/freedesktop/UPower":
            return upower
        return devices[path]

    bus.get_proxy.side_effect = get_proxy
    return bus


def test_matches_model():
    bus = _bus({
        "/org/freedesktop/UPower/devices/battery_BAT1": MagicMock(Model="Steam Deck", Percentage=88.0),
        "/org/freedesktop/UPower/devices/gaming_input_dev_44": MagicMock(
            Model="Microsoft Xbox Controller", Percentage=63.0),
    })
    assert get_battery_percentage_from_upower("Microsoft Xbox Controller", bus=bus) == 63


def test_no_match():
    bus = _bus({"/org/freedesktop/UPower/devices/battery_BAT1": MagicMock(Model="Steam Deck", Percentage=88.0)})
    assert get_battery_percentage_from_upower("Microsoft Xbox Controller", bus=bus) is None


def test_bus_failure():
    bus = MagicMock()
    bus.get_proxy.side_effect = RuntimeError("no system bus")
    assert get_battery_percentage_from_upower("Microsoft Xbox Controller", bus=bus) is None
