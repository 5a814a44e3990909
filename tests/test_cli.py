from pathlib import Path

import pytest

from homenet import cli


def test_show_config_prints_resolved_sections(tmp_path: Path, capsys) -> None:
    path = tmp_path / "homenet.cfg"
    path.write_text("[ranges]\nabc = 18, 22\n", encoding="utf-8")

    assert cli.main(["--config", str(path), "show-config"]) == 0

    output = capsys.readouterr().out
    assert f"Configuration loaded from {path}" in output
    assert "[controller]" in output
    assert "poll_interval_seconds = 5.0" in output
    assert "abc = 18, 22" in output


def test_invalid_config_exits_with_status_2(tmp_path: Path, capsys) -> None:
    path = tmp_path / "homenet.cfg"
    path.write_text("[ranges]\nabc = 30, 10\n", encoding="utf-8")

    assert cli.main(["--config", str(path), "show-config"]) == 2
    assert "Invalid configuration" in capsys.readouterr().err


def test_start_runs_controller(tmp_path: Path, monkeypatch) -> None:
    started = []
    monkeypatch.setattr(cli.HomenetController, "start", classmethod(lambda cls, config: started.append(config)))

    assert cli.main(["--config", str(tmp_path / "missing.cfg"), "start"]) == 0
    assert started[0].path == tmp_path / "missing.cfg"


def test_announce_arguments() -> None:
    args = cli.build_parser().parse_args(
        ["announce", "--role", "sensor", "--name", "temperature_abc", "--host", "10.0.0.5", "--port", "9001"]
    )

    assert args.command == "announce"
    assert args.role == "sensor"
    assert args.port == 9001


def test_announce_rejects_unknown_role() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(
            ["announce", "--role", "camera", "--name", "x_y", "--host", "10.0.0.5", "--port", "1"]
        )
