from __future__ import annotations

from typing import Any, Dict, List, NoReturn

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the CrowdWatch service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=30.0)

    def close(self) -> None:
        self._client.close()

    def get_live(self) -> Dict[str, Any]:
        return self._request("GET", "/live")

    def get_alerts(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/alerts")

    def get_analytics(self, time_range: str) -> Dict[str, Any]:
        return self._request("GET", "/analytics", params={"range": time_range})

    def list_thresholds(self) -> Dict[str, Any]:
        return self._request("GET", "/settings/thresholds")

    def put_threshold(self, location: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/settings/thresholds/{location}", json=payload)

    def delete_threshold(self, location: str) -> None:
        self._request("DELETE", f"/settings/thresholds/{location}")

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.HTTPError as exc:
            typer.secho(f"Request to {self._config.base_url} failed: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> NoReturn:
        detail: Any = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
