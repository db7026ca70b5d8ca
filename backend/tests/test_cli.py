"""CLI smoke tests."""

from __future__ import annotations

import os
from pathlib import Path

from typer.testing import CliRunner

from overleaf_web.cli.main import app

runner = CliRunner()


def test_chain_url_uses_given_hops() -> None:
    result = runner.invoke(
        app, ["chain-url", "https://a.example/x", "--hop", "http://p1/proxy/t"]
    )
    assert result.exit_code == 0
    assert result.output.strip() == "http://p1/proxy/t?url=https%3A%2F%2Fa.example%2Fx"


def test_sweep_images_reports_counts(tmp_path: Path, monkeypatch) -> None:
    image_dir = tmp_path / "learn-images"
    image_dir.mkdir()
    stale = image_dir / "old.png"
    stale.write_bytes(b"x")
    os.utime(stale, (0, 0))
    monkeypatch.setenv("OLW_LEARN_IMAGE_DIR", str(image_dir))

    result = runner.invoke(app, ["sweep-images"])
    assert result.exit_code == 0
    assert '"removed": 1' in result.output
    assert not stale.exists()
