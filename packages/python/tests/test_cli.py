"""
Tests for the command-line interface.
"""

import logging

import pytest

from lagrange_erasure.cli import main
from lagrange_erasure.config import get_settings
from lagrange_erasure.logger import PACKAGE_LOGGER

ORIGINAL = b"Data protected from the command line.\x00\xff" * 5


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    log = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(log.handlers):
        log.removeHandler(handler)
    log.setLevel(logging.NOTSET)
    log.propagate = True


@pytest.fixture
def encoded(tmp_path):
    source = tmp_path / "source.bin"
    source.write_bytes(ORIGINAL)
    workdir = tmp_path / "work"
    assert main(["create", "-i", str(source), "-d", str(workdir), "-p", "3+2"]) == 0
    return workdir


class TestCreate:
    """Tests for the create command."""

    def test_create(self, tmp_path, capsys):
        source = tmp_path / "source.bin"
        source.write_bytes(ORIGINAL)
        workdir = tmp_path / "w"

        assert main(["create", "-i", str(source), "-d", str(workdir), "-p", "2+1"]) == 0
        assert (workdir / "meta.json").exists()
        assert (workdir / "2.e.block").exists()
        assert "✅" in capsys.readouterr().out

    def test_default_pattern(self, tmp_path):
        source = tmp_path / "source.bin"
        source.write_bytes(ORIGINAL)

        assert main(["create", "-i", str(source), "-d", str(tmp_path / "w")]) == 0
        assert (tmp_path / "w" / "4.e.block").exists()

    def test_malformed_pattern(self, tmp_path, capsys):
        source = tmp_path / "source.bin"
        source.write_bytes(ORIGINAL)

        code = main(["create", "-i", str(source), "-d", str(tmp_path / "w"), "-p", "3x2"])

        assert code == 1
        assert "Malformed pattern" in capsys.readouterr().err

    def test_missing_source(self, tmp_path, capsys):
        code = main(["create", "-i", str(tmp_path / "nope"), "-d", str(tmp_path / "w")])

        assert code == 1
        assert "❌" in capsys.readouterr().err


class TestRebuild:
    """Tests for the rebuild command."""

    def test_rebuild_after_loss(self, encoded, tmp_path):
        (encoded / "0.d.block").unlink()
        (encoded / "3.e.block").unlink()
        out = tmp_path / "out.bin"

        assert main(["rebuild", "-d", str(encoded), "-o", str(out)]) == 0
        assert out.read_bytes() == ORIGINAL

    def test_refuses_existing_output(self, encoded, tmp_path, capsys):
        out = tmp_path / "out.bin"
        out.write_bytes(b"existing")

        assert main(["rebuild", "-d", str(encoded), "-o", str(out)]) == 1
        assert "--force" in capsys.readouterr().err
        assert out.read_bytes() == b"existing"

    def test_force_overwrites(self, encoded, tmp_path):
        out = tmp_path / "out.bin"
        out.write_bytes(b"existing")

        assert main(["rebuild", "-d", str(encoded), "-o", str(out), "--force"]) == 0
        assert out.read_bytes() == ORIGINAL

    def test_too_few_fragments(self, encoded, tmp_path, capsys):
        for name in ("0.d.block", "1.d.block", "2.d.block"):
            (encoded / name).unlink()
        out = tmp_path / "out.bin"

        assert main(["rebuild", "-d", str(encoded), "-o", str(out)]) == 1
        assert "Need 3" in capsys.readouterr().err
        assert not out.exists()


class TestVerify:
    """Tests for the verify command."""

    def test_feasible(self, encoded, capsys):
        (encoded / "1.d.block").unlink()

        assert main(["verify", "-d", str(encoded)]) == 0
        out = capsys.readouterr().out
        assert "4/5 present" in out
        assert "Missing: 1" in out

    def test_not_feasible(self, encoded, capsys):
        for name in ("0.d.block", "3.e.block", "4.e.block"):
            (encoded / name).unlink()

        assert main(["verify", "-d", str(encoded)]) == 1
        assert "more fragment" in capsys.readouterr().err

    def test_undecodable_manifest(self, encoded, tmp_path, capsys):
        (encoded / "meta.json").write_bytes(b"\xff\xfe[garbage")

        assert main(["rebuild", "-d", str(encoded), "-o", str(tmp_path / "out.bin")]) == 1
        assert main(["verify", "-d", str(encoded)]) == 1
        assert "UTF-8" in capsys.readouterr().err

    def test_no_manifest(self, tmp_path, capsys):
        assert main(["verify", "-d", str(tmp_path)]) == 1
        assert "Manifest not found" in capsys.readouterr().err


class TestGlobalOptions:
    """Tests for options shared by every command."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert "lagrange-erasure" in capsys.readouterr().out

    def test_invalid_environment(self, monkeypatch, capsys):
        monkeypatch.setenv("LAGRANGE_ERASURE_WORKERS", "0")
        get_settings.cache_clear()
        try:
            assert main(["verify", "-d", "."]) == 1
        finally:
            get_settings.cache_clear()
        assert "Invalid configuration" in capsys.readouterr().err

    def test_invalid_workers(self):
        with pytest.raises(SystemExit):
            main(["--workers", "0", "verify", "-d", "."])

    def test_json_logging(self, encoded, tmp_path, capsys):
        out = tmp_path / "out.bin"

        code = main(["--log-level", "info", "--log-json", "rebuild", "-d", str(encoded), "-o", str(out)])

        assert code == 0
        assert '"level": "INFO"' in capsys.readouterr().err
