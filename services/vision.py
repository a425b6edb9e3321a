"""Client for the external image analysis service."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import ValidationError

from app.schemas import AnalysisResult

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_TIMEOUT = 30.0

_COMPLETED = "completed"
_FAILED_STATUSES = {"failed", "error"}


class AnalysisError(RuntimeError):
    """Raised when an image cannot be submitted or the analysis fails."""


class AnalysisTimeoutError(AnalysisError):
    """Raised when the analysis does not complete within the allowed time."""


class VisionClient:
    """Uploads images and waits for the people count to become available."""

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.Client] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=30.0)
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._sleep = sleep
        self._monotonic = monotonic

    def close(self) -> None:
        self._client.close()

    def upload(self, path: Path) -> str:
        try:
            with path.open("rb") as handle:
                response = self._client.post(
                    "/upload",
                    files={"image": (path.name, handle, "application/octet-stream")},
                )
            response.raise_for_status()
            payload = response.json()
        except OSError as exc:
            raise AnalysisError(f"Unable to read image {path}: {exc}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise AnalysisError(f"Upload failed: {exc}") from exc

        filename = payload.get("filename") if isinstance(payload, dict) else None
        if not isinstance(filename, str) or not filename:
            raise AnalysisError("Unexpected response payload when uploading image.")
        return filename

    def wait_for_result(self, filename: str, timeout: Optional[float] = None) -> AnalysisResult:
        deadline = self._monotonic() + (self.timeout if timeout is None else timeout)
        last_status: Optional[str] = None
        while True:
            remaining = deadline - self._monotonic()
            if remaining <= 0:
                break
            try:
                payload = self._status(filename, timeout=remaining)
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning(
                    "Analysis status check failed",
                    extra={"source": filename, "reason": str(exc)},
                )
            else:
                last_status = str(payload.get("status"))
                if last_status == _COMPLETED:
                    return self._to_result(payload)
                if last_status in _FAILED_STATUSES:
                    raise AnalysisError(
                        f"Analysis of {filename} failed: {payload.get('error') or last_status}"
                    )
            remaining = deadline - self._monotonic()
            if remaining <= 0:
                break
            self._sleep(min(self.poll_interval, remaining))

        raise AnalysisTimeoutError(
            f"Analysis of {filename} timed out. Last status: {last_status or 'unknown'}"
        )

    def analyze(self, path: Path, timeout: Optional[float] = None) -> AnalysisResult:
        filename = self.upload(path)
        logger.info("Image submitted for analysis", extra={"source": filename})
        return self.wait_for_result(filename, timeout=timeout)

    def _status(self, filename: str, timeout: float) -> Dict[str, Any]:
        response = self._client.get(f"/status/{filename}", timeout=timeout)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("Status payload is not an object.")
        return payload

    @staticmethod
    def _to_result(payload: Dict[str, Any]) -> AnalysisResult:
        data = {key: value for key, value in payload.items() if value is not None}
        try:
            return AnalysisResult.model_validate(data)
        except ValidationError as exc:
            raise AnalysisError(f"Invalid analysis result: {exc}") from exc
