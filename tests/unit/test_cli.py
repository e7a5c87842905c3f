"""Test the command line front end."""

from __future__ import annotations

import pytest

from dawfu import cli
from dawfu.exceptions import (
    ConnectionRefused,
    ConnectionLost,
    IncompatibleDevice,
    MultipleCandidates,
    NoDeviceFound,
)
from dawfu.models.descriptor import DeviceDescriptor
from dawfu.models.info import DeviceInfo
from dawfu.models.transfer import TransferResult


class TestParseOptions:
    """Test key=value option parsing."""

    def test_defaults(self):
        options = cli.parse_options("info", [])

        assert options.verbosity == 0
        assert options.filename is None
        assert options.criteria.timeout == 10.0
        assert options.criteria.name is None

    def test_all_options(self):
        options = cli.parse_options(
            "upload",
            ["name=MOY", "address=aa:bb:cc:dd:ee:ff", "verbosity=2", "adapter=1", "timeout=2.5", "face.bin"],
        )

        assert options.criteria.name == "MOY"
        assert options.criteria.address == "aa:bb:cc:dd:ee:ff"
        assert options.criteria.adapter == 1
        assert options.criteria.timeout == 2.5
        assert options.verbosity == 2
        assert options.filename == "face.bin"

    def test_file_option_and_verbose_alias(self):
        options = cli.parse_options("upload", ["file=face.bin", "verbose=1"])

        assert options.filename == "face.bin"
        assert options.verbosity == 1

    def test_force_option(self):
        assert cli.parse_options("upload", ["force=1", "face.bin"]).force is True
        assert cli.parse_options("upload", ["face.bin"]).force is False

    def test_named_adapter(self):
        assert cli.parse_options("info", ["adapter=hci2"]).criteria.adapter == "hci2"

    @pytest.mark.parametrize(
        "tokens",
        [
            ["color=red"],
            ["timeout=soon"],
            ["timeout=0"],
            ["verbosity=lots"],
            ["a.bin", "b.bin"],
            ["file=a.bin", "b.bin"],
        ],
    )
    def test_invalid(self, tokens):
        with pytest.raises(ValueError):
            cli.parse_options("upload", tokens)


class _FakeSession:
    def __init__(self):
        self.dumped = 0

    async def dump_services(self):
        self.dumped += 1


class _FakeWatch:
    """Stands in for DaFitWatch; records how it was built and used."""

    instances: list[_FakeWatch] = []

    def __init__(self, descriptor, config=None, timeout=10.0):
        self.descriptor = descriptor
        self.timeout = timeout
        self.session = _FakeSession()
        self.upload_kwargs = None
        _FakeWatch.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def read_info(self):
        return DeviceInfo(manufacturer="MOYOUNG-V2")

    async def upload_face(self, data, **kwargs):
        self.upload_kwargs = kwargs
        return TransferResult(total=len(data), chunks_sent=1, retransmissions=0, checksum=0)


@pytest.fixture
def fake_watch(monkeypatch):
    async def fake_discover(criteria):
        return DeviceDescriptor("AA:BB:CC:DD:EE:FF", "MOY-1")

    _FakeWatch.instances = []
    monkeypatch.setattr(cli, "discover_device", fake_discover)
    monkeypatch.setattr(cli, "DaFitWatch", _FakeWatch)
    return _FakeWatch


class TestRunCommands:
    """Test that selection options reach the watch facade."""

    @pytest.mark.asyncio
    async def test_info_uses_timeout_option(self, fake_watch):
        criteria = cli.parse_options("info", ["timeout=2.5"]).criteria

        await cli.run_info(criteria)

        assert fake_watch.instances[0].timeout == 2.5
        assert fake_watch.instances[0].session.dumped == 0

    @pytest.mark.asyncio
    async def test_info_dump(self, fake_watch):
        await cli.run_info(cli.parse_options("info", []).criteria, dump=True)

        assert fake_watch.instances[0].session.dumped == 1

    @pytest.mark.asyncio
    async def test_upload_uses_timeout_and_force(self, fake_watch):
        criteria = cli.parse_options("upload", ["timeout=30"]).criteria

        result = await cli.run_upload(criteria, b"\x01" * 10, dump=True, force=True)

        watch = fake_watch.instances[0]
        assert result.total == 10
        assert watch.timeout == 30.0
        assert watch.session.dumped == 1
        assert watch.upload_kwargs["force"] is True

    @pytest.mark.asyncio
    async def test_upload_checks_compatibility_by_default(self, fake_watch):
        await cli.run_upload(cli.parse_options("upload", []).criteria, b"\x01")

        assert fake_watch.instances[0].upload_kwargs["force"] is False


class TestMain:
    """Test mode dispatch and exit codes."""

    def test_help_is_default(self, capsys):
        assert cli.main([]) == cli.EXIT_SUCCESS
        assert "usage: dawfu" in capsys.readouterr().out

    def test_bad_option(self, capsys):
        assert cli.main(["info", "colour=blue"]) == cli.EXIT_INVALID_INPUT
        assert "Unknown option" in capsys.readouterr().err

    def test_upload_missing_file(self, tmp_path):
        assert cli.main(["upload", str(tmp_path / "missing.bin")]) == cli.EXIT_INVALID_INPUT

    def test_upload_without_file(self):
        assert cli.main(["upload", "name=MOY"]) == cli.EXIT_INVALID_INPUT

    def test_upload_empty_file(self, tmp_path):
        face = tmp_path / "face.bin"
        face.write_bytes(b"")

        assert cli.main(["upload", str(face)]) == cli.EXIT_INVALID_INPUT

    def test_info_success(self, monkeypatch, capsys):
        async def fake_run_info(criteria, **kwargs):
            return DeviceInfo(manufacturer="MOYOUNG-V2", battery_level=80, unavailable=["serial_number"])

        monkeypatch.setattr(cli, "run_info", fake_run_info)

        assert cli.main(["info", "name=MOY"]) == cli.EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "MOYOUNG-V2" in out
        assert "(unavailable)" in out
        assert "compatible" not in out

    def test_info_incompatible_warning(self, monkeypatch, capsys):
        async def fake_run_info(criteria, **kwargs):
            return DeviceInfo(manufacturer="ACME")

        monkeypatch.setattr(cli, "run_info", fake_run_info)

        assert cli.main(["info"]) == cli.EXIT_SUCCESS
        assert "doesn't look like a compatible device" in capsys.readouterr().out

    def test_upload_success(self, monkeypatch, tmp_path):
        face = tmp_path / "face.bin"
        face.write_bytes(b"\xaa" * 500)
        uploaded = []

        async def fake_run_upload(criteria, data, **kwargs):
            uploaded.append((criteria.address, data))
            return TransferResult(total=len(data), chunks_sent=3, retransmissions=0, checksum=0)

        monkeypatch.setattr(cli, "run_upload", fake_run_upload)

        assert cli.main(["upload", "address=AA:BB:CC:DD:EE:FF", f"file={face}"]) == cli.EXIT_SUCCESS
        assert uploaded == [("AA:BB:CC:DD:EE:FF", b"\xaa" * 500)]

    def test_no_device_found(self, monkeypatch):
        async def fake_run_info(criteria, **kwargs):
            raise NoDeviceFound("nothing")

        monkeypatch.setattr(cli, "run_info", fake_run_info)

        assert cli.main(["info"]) == cli.EXIT_DEVICE_NOT_FOUND

    def test_multiple_candidates_listed(self, monkeypatch, capsys):
        candidates = [
            DeviceDescriptor("00:00:00:00:00:01", "MOY-1", rssi=-50),
            DeviceDescriptor("00:00:00:00:00:02", "MOY-2", rssi=-70),
        ]

        async def fake_run_info(criteria, **kwargs):
            raise MultipleCandidates("2 devices match", candidates)

        monkeypatch.setattr(cli, "run_info", fake_run_info)

        assert cli.main(["info", "name=MOY"]) == cli.EXIT_DEVICE_NOT_FOUND
        err = capsys.readouterr().err
        assert "MOY-1 [00:00:00:00:00:01]" in err
        assert "MOY-2 [00:00:00:00:00:02]" in err

    def test_connection_refused(self, monkeypatch):
        async def fake_run_info(criteria, **kwargs):
            raise ConnectionRefused("busy")

        monkeypatch.setattr(cli, "run_info", fake_run_info)

        assert cli.main(["info"]) == cli.EXIT_DEVICE_ERROR

    def test_transfer_failure_reports_progress(self, monkeypatch, tmp_path, capsys):
        face = tmp_path / "face.bin"
        face.write_bytes(b"\x00" * 1000)

        async def fake_run_upload(criteria, data, **kwargs):
            raise ConnectionLost("link dropped", offset=488, total=1000)

        monkeypatch.setattr(cli, "run_upload", fake_run_upload)

        assert cli.main(["upload", str(face)]) == cli.EXIT_DEVICE_ERROR
        assert "uploaded 488 of 1000 bytes" in capsys.readouterr().err

    def test_interrupted(self, monkeypatch):
        def fake_execute(options, parser):
            raise KeyboardInterrupt

        monkeypatch.setattr(cli, "_execute", fake_execute)

        assert cli.main(["info"]) == cli.EXIT_INTERRUPTED

    def test_verbosity_2_dumps_services(self, monkeypatch):
        calls = []

        async def fake_run_info(criteria, **kwargs):
            calls.append(kwargs)
            return DeviceInfo(manufacturer="MOYOUNG-V2")

        monkeypatch.setattr(cli, "run_info", fake_run_info)

        assert cli.main(["info", "verbosity=1"]) == cli.EXIT_SUCCESS
        assert cli.main(["info", "verbosity=2"]) == cli.EXIT_SUCCESS
        assert calls == [{"dump": False}, {"dump": True}]

    def test_upload_force_passed_through(self, monkeypatch, tmp_path):
        face = tmp_path / "face.bin"
        face.write_bytes(b"\x01" * 10)
        calls = []

        async def fake_run_upload(criteria, data, **kwargs):
            calls.append(kwargs)
            return TransferResult(total=len(data), chunks_sent=1, retransmissions=0, checksum=0)

        monkeypatch.setattr(cli, "run_upload", fake_run_upload)

        assert cli.main(["upload", "force=1", str(face)]) == cli.EXIT_SUCCESS
        assert calls == [{"dump": False, "force": True}]

    def test_incompatible_device(self, monkeypatch, tmp_path, capsys):
        face = tmp_path / "face.bin"
        face.write_bytes(b"\x01" * 10)

        async def fake_run_upload(criteria, data, **kwargs):
            raise IncompatibleDevice("reports manufacturer 'ACME'", manufacturer="ACME")

        monkeypatch.setattr(cli, "run_upload", fake_run_upload)

        assert cli.main(["upload", str(face)]) == cli.EXIT_DEVICE_ERROR
        assert "ACME" in capsys.readouterr().err
