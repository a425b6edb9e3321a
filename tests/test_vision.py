from __future__ import annotations

from pathlib import Path
from typing import List

import httpx
import pytest

from services.vision import AnalysisError, AnalysisTimeoutError, VisionClient


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture()
def image(tmp_path: Path) -> Path:
    path = tmp_path / "crowd.jpg"
    path.write_bytes(b"\xff\xd8fake-jpeg")
    return path


def _vision(handler, clock: FakeClock, timeout: float = 30.0, poll_interval: float = 2.0) -> VisionClient:
    client = httpx.Client(base_url="http://vision", transport=httpx.MockTransport(handler))
    return VisionClient(
        "http://vision",
        client=client,
        poll_interval=poll_interval,
        timeout=timeout,
        sleep=clock.sleep,
        monotonic=clock.monotonic,
    )


def test_analyze_polls_until_completed(image: Path) -> None:
    clock = FakeClock()
    statuses = iter(["processing", "processing", "completed"])

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/upload":
            assert b"crowd.jpg" in request.content
            return httpx.Response(200, json={"filename": "crowd-123.jpg"})
        assert request.url.path == "/status/crowd-123.jpg"
        status = next(statuses)
        if status != "completed":
            return httpx.Response(200, json={"status": status})
        return httpx.Response(
            200,
            json={"status": "completed", "people_count": 37, "heatmap_url": "/heatmaps/1.jpg", "vis_url": None},
        )

    result = _vision(handler, clock).analyze(image)

    assert result.people_count == 37
    assert result.confidence_score == 0.95
    assert result.heatmap_url == "/heatmaps/1.jpg"
    assert clock.sleeps == [2.0, 2.0]


def test_analyze_times_out_within_deadline(image: Path) -> None:
    clock = FakeClock()
    request_timeouts: List[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/upload":
            return httpx.Response(200, json={"filename": "slow.jpg"})
        request_timeouts.append(request.extensions["timeout"]["read"])
        return httpx.Response(200, json={"status": "processing"})

    with pytest.raises(AnalysisTimeoutError) as excinfo:
        _vision(handler, clock, timeout=10.0, poll_interval=3.0).analyze(image)

    assert "processing" in str(excinfo.value)
    assert clock.now == 10.0
    assert clock.sleeps == [3.0, 3.0, 3.0, 1.0]
    assert request_timeouts == [10.0, 7.0, 4.0, 1.0]


def test_transient_status_errors_keep_polling(image: Path) -> None:
    clock = FakeClock()
    responses = iter([503, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/upload":
            return httpx.Response(200, json={"filename": "x.jpg"})
        code = next(responses)
        if code != 200:
            return httpx.Response(code)
        return httpx.Response(200, json={"status": "completed", "people_count": 5, "confidence_score": 0.8})

    result = _vision(handler, clock).analyze(image)

    assert result.people_count == 5
    assert result.confidence_score == 0.8


def test_upload_failure_raises_analysis_error(image: Path) -> None:
    clock = FakeClock()

    with pytest.raises(AnalysisError) as excinfo:
        _vision(lambda request: httpx.Response(500), clock).analyze(image)

    assert not isinstance(excinfo.value, AnalysisTimeoutError)


def test_failed_analysis_status_raises(image: Path) -> None:
    clock = FakeClock()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/upload":
            return httpx.Response(200, json={"filename": "x.jpg"})
        return httpx.Response(200, json={"status": "failed", "error": "model crashed"})

    with pytest.raises(AnalysisError, match="model crashed"):
        _vision(handler, clock).analyze(image)


def test_invalid_result_payload_raises(image: Path) -> None:
    clock = FakeClock()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/upload":
            return httpx.Response(200, json={"filename": "x.jpg"})
        return httpx.Response(200, json={"status": "completed", "people_count": -4})

    with pytest.raises(AnalysisError):
        _vision(handler, clock).analyze(image)
