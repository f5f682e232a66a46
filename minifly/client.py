"""HTTP client for the Minifly API."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import httpx

from minifly.api_types import App, CreateMachineRequest, Machine, MachineConfig
from minifly.config import Config
from minifly.errors import MiniflyError

CLIENT_VERSION = "0.1.3"

T = TypeVar("T")


class ApiRequestError(MiniflyError):
    """A request to the API failed or returned an unusable answer."""

    def __init__(self, message: str, *, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class ApiClient:
    """Talks to the Minifly API server over HTTP."""

    def __init__(self, config: Config, *, transport: httpx.BaseTransport | None = None) -> None:
        try:
            self._http = httpx.Client(
                timeout=config.timeout,
                verify=config.verify_ssl,
                headers={"User-Agent": f"minifly-cli/{CLIENT_VERSION}"},
                transport=transport,
            )
        except Exception as exc:
            raise MiniflyError(f"Failed to create HTTP client: {exc}") from exc
        self.base_url = config.api_url.rstrip("/")
        self.token = config.token

    def close(self) -> None:
        """Release the underlying connections."""
        self._http.close()

    def __enter__(self) -> ApiClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def health_check(self) -> bool:
        """Return whether the API server answers its health endpoint."""
        try:
            response = self._http.get(f"{self.base_url}/health")
        except httpx.HTTPError:
            return False
        return response.is_success

    def list_apps(self) -> list[App]:
        return self._get("/v1/apps", _list_of(App.from_dict))

    def create_app(self, name: str) -> App:
        return self._post("/v1/apps", {"app_name": name}, App.from_dict)

    def delete_app(self, name: str) -> None:
        self._delete(f"/v1/apps/{name}")

    def list_machines(self, app_name: str) -> list[Machine]:
        return self._get(f"/v1/apps/{app_name}/machines", _list_of(Machine.from_dict))

    def create_machine(
        self,
        app_name: str,
        image: str,
        name: str | None = None,
        region: str | None = None,
    ) -> Machine:
        request = CreateMachineRequest(
            name=name,
            config=MachineConfig(image=image),
            region=region,
            skip_launch=False,
            skip_service_registration=False,
        )
        return self._post(f"/v1/apps/{app_name}/machines", request.to_dict(), Machine.from_dict)

    def start_machine(self, machine_id: str) -> Machine:
        return self._post(f"/v1/machines/{machine_id}/start", {}, Machine.from_dict)

    def stop_machine(self, machine_id: str) -> Machine:
        return self._post(f"/v1/machines/{machine_id}/stop", {}, Machine.from_dict)

    def delete_machine(self, machine_id: str, force: bool = False) -> None:
        suffix = "?force=true" if force else ""
        self._delete(f"/v1/machines/{machine_id}{suffix}")

    def get_machine(self, machine_id: str) -> Machine:
        return self._get(f"/v1/machines/{machine_id}", Machine.from_dict)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token is not None else {}

    def _send(self, method: str, path: str, body: Any = None) -> tuple[str, httpx.Response]:
        url = f"{self.base_url}{path}"
        kwargs: dict[str, Any] = {"headers": self._headers()}
        if body is not None:
            kwargs["json"] = body
        try:
            response = self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ApiRequestError(f"Failed to send {method} request to {url}: {exc}") from exc
        if not response.is_success:
            text = response.text
            raise ApiRequestError(
                f"API request failed with status "
                f"{response.status_code} {response.reason_phrase}: {text}",
                status=response.status_code,
                body=text,
            )
        return url, response

    @staticmethod
    def _parse(url: str, response: httpx.Response, decode: Callable[[Any], T]) -> T:
        try:
            return decode(response.json())
        except ValueError as exc:
            raise ApiRequestError(f"Failed to parse JSON response from {url}: {exc}") from exc

    def _get(self, path: str, decode: Callable[[Any], T]) -> T:
        url, response = self._send("GET", path)
        return self._parse(url, response, decode)

    def _post(self, path: str, body: Any, decode: Callable[[Any], T]) -> T:
        url, response = self._send("POST", path, body)
        return self._parse(url, response, decode)

    def _delete(self, path: str) -> None:
        self._send("DELETE", path)


def _list_of(decode: Callable[[Any], T]) -> Callable[[Any], list[T]]:
    def decode_list(data: Any) -> list[T]:
        if not isinstance(data, list):
            raise ValueError(f"expected a list, got {type(data).__name__}")
        return [decode(item) for item in data]

    return decode_list