import pytest

from dawfu.protocol.commands import (
    CONTROL_CHAR_UUID,
    DATA_CHAR_UUID,
    NOTIFY_CHAR_UUID,
    SERVICE_UUID,
    CommandCode,
    build_frame,
    build_switch_face_command,
    build_transfer_commit_command,
    build_transfer_start_command,
)


class TestCommandBuilders:
    """Test command builder functions against captured watch traffic."""

    def test_build_transfer_start_command(self):
        """Start frame: header, length 9, command 0x74, size big-endian."""
        cmd = build_transfer_start_command(0x0001E240)

        assert cmd == b"\xfe\xea\x20\x09\x74\x00\x01\xe2\x40"

    def test_build_transfer_start_rejects_zero(self):
        with pytest.raises(ValueError, match="Invalid transfer size"):
            build_transfer_start_command(0)

    def test_build_transfer_start_rejects_oversize(self):
        with pytest.raises(ValueError):
            build_transfer_start_command(0x1_0000_0000)

    def test_build_transfer_commit_command(self):
        """Commit frame is the start frame with a zero size."""
        cmd = build_transfer_commit_command()

        assert cmd == b"\xfe\xea\x20\x09\x74\x00\x00\x00\x00"

    def test_build_switch_face_command_default_slot(self):
        """Custom face lives in slot 13."""
        cmd = build_switch_face_command()

        assert cmd == b"\xfe\xea\x20\x06\x19\x0d"

    def test_build_switch_face_command_custom_slot(self):
        assert build_switch_face_command(6) == b"\xfe\xea\x20\x06\x19\x06"

    def test_build_switch_face_command_invalid_slot(self):
        with pytest.raises(ValueError, match="slot"):
            build_switch_face_command(256)

    def test_build_frame_length_counts_header(self):
        frame = build_frame(CommandCode.WATCH_FACE_TRANSFER, b"\x01\x02")

        assert frame[3] == len(frame) == 7

    def test_build_frame_rejects_long_payload(self):
        with pytest.raises(ValueError, match="too long"):
            build_frame(CommandCode.WATCH_FACE_TRANSFER, bytes(251))


class TestUuids:
    """Test 16-bit UUID expansion."""

    def test_vendor_service_uuid(self):
        assert SERVICE_UUID == "0000feea-0000-1000-8000-00805f9b34fb"

    def test_channel_uuids(self):
        assert CONTROL_CHAR_UUID.startswith("0000fee2-")
        assert DATA_CHAR_UUID.startswith("0000fee6-")
        assert NOTIFY_CHAR_UUID.startswith("0000fee3-")
