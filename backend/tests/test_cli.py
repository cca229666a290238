"""
Tests for the mediawatch command line.
"""

import json

import pytest

from conftest import write_media
from mediawatch import cli


@pytest.fixture
def config_file(tmp_path, media_dir, output_root):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "db_path": str(tmp_path / "state.db"),
        "output_root": str(output_root),
        "index": {"roots": [str(media_dir)]},
        "liveness_backend": "none",
    }))
    return path


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(argv)
    return exc_info.value.code


def test_sweep_prints_result_and_captures(config_file, media_dir, output_root, capsys):
    write_media(media_dir / "IMG_1.jpg")

    code = _run(["--config", str(config_file), "sweep"])

    assert code == 0
    result = json.loads(capsys.readouterr().out)
    assert result["status"] == "completed"
    assert len(result["dispatched"]) == 1
    assert (output_root / "IMG_1.jpg").exists()


def test_sweep_failure_exit_code(config_file, media_dir, capsys):
    media_dir.rmdir()

    code = _run(["--config", str(config_file), "sweep"])

    assert code == 2
    assert json.loads(capsys.readouterr().out)["status"] == "failed"


def test_status_and_reset_marker(config_file, media_dir, capsys):
    write_media(media_dir / "IMG_1.jpg")
    _run(["--config", str(config_file), "sweep", "--no-capture"])
    capsys.readouterr()

    assert _run(["--config", str(config_file), "status"]) == 0
    assert json.loads(capsys.readouterr().out)["marker"] > 0

    assert _run(["--config", str(config_file), "reset-marker"]) == 0
    capsys.readouterr()

    _run(["--config", str(config_file), "status"])
    assert json.loads(capsys.readouterr().out)["marker"] == 0


def test_missing_config_exit_code(tmp_path, capsys):
    code = _run(["--config", str(tmp_path / "absent.json"), "status"])

    assert code == 1
    assert "Config file not found" in capsys.readouterr().err


def test_command_required():
    assert _run([]) == 2


def test_log_level_override(config_file):
    args = cli.build_parser().parse_args(["--config", str(config_file), "--log-level", "debug", "status"])
    config = cli._load(args)

    assert config.log_level == "DEBUG"
