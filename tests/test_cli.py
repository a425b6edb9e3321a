from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from app.schemas import AnalysisResult
from cli.app import app
from services.vision import AnalysisError, AnalysisTimeoutError


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.thresholds: Dict[str, Dict[str, Any]] = {}
        self.analytics_calls: List[str] = []
        self.closed = False

    def get_live(self) -> Dict[str, Any]:
        return {
            "total": 42,
            "generated_at": "2025-01-01T12:00:00Z",
            "feed_ok": True,
            "locations": {
                "main_entrance": {"current": 42, "status": "warning", "last_update": "2025-01-01T11:59:58Z"},
            },
        }

    def get_alerts(self) -> List[Dict[str, Any]]:
        return [
            {
                "location": "main_entrance",
                "count": 450,
                "threshold": 400.0,
                "fired_at": "2025-01-01T12:00:00Z",
            }
        ]

    def get_analytics(self, time_range: str) -> Dict[str, Any]:
        self.analytics_calls.append(time_range)
        return {
            "time_range": time_range,
            "range_start": "2024-12-25T12:00:00Z",
            "hourly_trends": [{"hour": "11:00", "average": 20.0, "samples": 2}],
            "location_aggregates": [
                {"location": "main_entrance", "name": "Main Entrance", "total": 40, "peak": 30, "average": 20.0, "samples": 2}
            ],
            "density_buckets": [{"level": "normal", "label": "Normal (<200)", "value": 2}],
            "summary": {"total_readings": 2, "peak": 30, "average": 20.0},
        }

    def list_thresholds(self) -> Dict[str, Any]:
        return dict(self.thresholds)

    def put_threshold(self, location: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.thresholds[location] = payload
        return payload

    def delete_threshold(self, location: str) -> None:
        self.thresholds.pop(location)

    def close(self) -> None:
        self.closed = True


class StubVision:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.analyzed: List[Path] = []
        self.closed = False

    def analyze(self, path: Path) -> AnalysisResult:
        self.analyzed.append(path)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    client = StubClient(config=None)

    def factory(config):
        client.config = config
        return client

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return client


def _install_vision(monkeypatch, vision: StubVision) -> Dict[str, Any]:
    seen: Dict[str, Any] = {}

    def factory(base_url, poll_interval, timeout):
        seen.update(base_url=base_url, poll_interval=poll_interval, timeout=timeout)
        return vision

    monkeypatch.setattr("cli.app.VisionClient", factory)
    return seen


def test_live_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["--base-url", "http://api.local/", "live"])

    assert result.exit_code == 0
    assert "Live State" in result.stdout
    assert "main_entrance: 42" in result.stdout
    assert "[warning]" in result.stdout
    assert stub.config.base_url == "http://api.local"
    assert stub.closed is True


def test_alerts_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["alerts"])

    assert result.exit_code == 0
    assert "Recent Alerts" in result.stdout
    assert "main_entrance: 450 people (threshold 400.0)" in result.stdout


def test_analytics_command_passes_range(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["analytics", "--range", "week"])

    assert result.exit_code == 0
    assert stub.analytics_calls == ["week"]
    assert "Hourly Trends" in result.stdout
    assert "Main Entrance: total=40 peak=30" in result.stdout
    assert "Normal (<200): 2" in result.stdout


def test_threshold_set_show_delete(runner: CliRunner, stub: StubClient) -> None:
    empty = runner.invoke(app, ["thresholds", "show"])
    assert "No thresholds configured." in empty.stdout

    saved = runner.invoke(app, ["thresholds", "set", "food_court", "--max-capacity", "250"])
    assert saved.exit_code == 0
    assert "Thresholds saved for food_court." in saved.stdout
    assert stub.thresholds["food_court"] == {
        "max_capacity": 250,
        "warning_ratio": 0.7,
        "critical_ratio": 0.9,
    }

    shown = runner.invoke(app, ["thresholds", "show"])
    assert "food_court: max_capacity=250" in shown.stdout

    removed = runner.invoke(app, ["thresholds", "delete", "food_court"])
    assert removed.exit_code == 0
    assert "Thresholds removed for food_court." in removed.stdout
    assert stub.thresholds == {}


def test_analyze_command(monkeypatch, runner: CliRunner, stub: StubClient, tmp_path) -> None:
    image = tmp_path / "crowd.jpg"
    image.write_bytes(b"jpeg")
    vision = StubVision(AnalysisResult(people_count=37, heatmap_url="/heatmaps/1.jpg"))
    seen = _install_vision(monkeypatch, vision)

    result = runner.invoke(
        app,
        ["--vision-url", "http://vision.local", "--poll-interval", "0.5", "--timeout", "5", "analyze", str(image)],
    )

    assert result.exit_code == 0
    assert "Analysis Result" in result.stdout
    assert "people_count: 37" in result.stdout
    assert seen == {"base_url": "http://vision.local", "poll_interval": 0.5, "timeout": 5.0}
    assert vision.analyzed == [image]
    assert vision.closed is True


def test_analyze_timeout_exits_with_error(monkeypatch, runner: CliRunner, stub: StubClient, tmp_path) -> None:
    image = tmp_path / "crowd.jpg"
    image.write_bytes(b"jpeg")
    vision = StubVision(AnalysisTimeoutError("last status: processing"))
    _install_vision(monkeypatch, vision)

    result = runner.invoke(app, ["analyze", str(image)])

    assert result.exit_code == 1
    assert "Analysis timed out" in result.output
    assert vision.closed is True


def test_analyze_failure_exits_with_error(monkeypatch, runner: CliRunner, stub: StubClient, tmp_path) -> None:
    image = tmp_path / "crowd.jpg"
    image.write_bytes(b"jpeg")
    _install_vision(monkeypatch, StubVision(AnalysisError("model crashed")))

    result = runner.invoke(app, ["analyze", str(image)])

    assert result.exit_code == 1
    assert "Processing failed: model crashed" in result.output
