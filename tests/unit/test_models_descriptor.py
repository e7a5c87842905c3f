"""Test descriptor and criteria models."""

import pytest

from dawfu.models.descriptor import DeviceDescriptor, SelectionCriteria, normalize_address


class TestNormalizeAddress:
    """Test address canonicalization."""

    @pytest.mark.parametrize(
        "address",
        ["AA:BB:CC:DD:EE:FF", "aa:bb:cc:dd:ee:ff", "aa-bb-cc-dd-ee-ff", "aabbccddeeff", " AA BB CC DD EE FF "],
    )
    def test_mac_forms(self, address):
        assert normalize_address(address) == "AA:BB:CC:DD:EE:FF"

    def test_macos_uuid_is_only_uppercased(self):
        address = "12345678-9abc-def0-1234-56789abcdef0"

        assert normalize_address(address) == address.upper()


class TestSelectionCriteria:
    """Test matching rules."""

    def test_address_wins_over_name(self):
        criteria = SelectionCriteria(name="nomatch", address="aa-bb-cc-dd-ee-ff")

        assert criteria.matches(DeviceDescriptor("AA:BB:CC:DD:EE:FF", "MOY"))

    def test_name_substring(self):
        criteria = SelectionCriteria(name="QHG")

        assert criteria.matches(DeviceDescriptor("00:00:00:00:00:01", "moy-qhg3"))
        assert not criteria.matches(DeviceDescriptor("00:00:00:00:00:02", None))

    def test_no_criteria_matches_everything(self):
        assert SelectionCriteria().matches(DeviceDescriptor("00:00:00:00:00:01"))

    def test_adapter_name(self):
        assert SelectionCriteria(adapter=0).adapter_name == "hci0"
        assert SelectionCriteria(adapter="hci3").adapter_name == "hci3"
        assert SelectionCriteria().adapter_name is None


def test_descriptor_equality_ignores_ble_handle():
    a = DeviceDescriptor("00:00:00:00:00:01", "MOY", ble_device=object())
    b = DeviceDescriptor("00:00:00:00:00:01", "MOY", ble_device=object())

    assert a == b
    assert a.label == "MOY [00:00:00:00:00:01]"
