from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from glowbridge.cli import app

runner = CliRunner()


def test_profiles_lists_packaged_profiles() -> None:
    result = runner.invoke(app, ["profiles"])

    assert result.exit_code == 0
    assert "govee_gu10: Govee GU10 Smart Bulb" in result.stdout
    assert "color_temperature" in result.stdout
    assert "ihoment_H6008" in result.stdout


def test_encode_prints_hex_frame() -> None:
    result = runner.invoke(app, ["encode", "govee_gu10", "power", "ON"])

    assert result.exit_code == 0
    assert result.stdout.strip() == "330101" + "00" * 16 + "33"


def test_encode_reports_errors_cleanly() -> None:
    result = runner.invoke(app, ["encode", "govee_gu10", "strobe", "1"])

    assert result.exit_code == 1
    assert "Unknown command kind" in result.output
    assert "Traceback" not in result.output


def test_devices_lists_configured_devices(tmp_path: Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(
        "devices:\n  - {address: 'aa:00:00:00:00:01', name: Desk, unique_id: desk}\n",
        encoding="utf-8",
    )

    result = runner.invoke(app, ["devices", "--config", str(config)])

    assert result.exit_code == 0
    assert result.stdout.strip() == "AA:00:00:00:00:01 Desk -> desk"


def test_devices_without_config_fails(tmp_path: Path) -> None:
    result = runner.invoke(app, ["devices", "--config", str(tmp_path / "missing.yaml")])

    assert result.exit_code == 1
    assert "does not exist" in result.output
