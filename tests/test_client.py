import json

import httpx
import pytest
import respx

from minifly.api_types import App, ImageRef, Machine, MachineConfig
from minifly.client import ApiClient, ApiRequestError
from minifly.config import Config

BASE = "http://localhost:4280"


def _app() -> App:
    return App(
        name="my-app",
        organization="my-org",
        status="deployed",
        deployed=True,
        hostname="my-app.fly.dev",
        app_url="https://my-app.fly.dev",
        platform_version="v2",
    )


def _machine(machine_id: str = "m1") -> Machine:
    return Machine(
        id=machine_id,
        name="web",
        state="started",
        region="local",
        instance_id="inst",
        private_ip="fdaa:0:1::3",
        config=MachineConfig(image="nginx:latest"),
        image_ref=ImageRef(registry="docker.io", repository="nginx", tag="latest", digest=""),
        created_at="2024-06-22T10:30:00Z",
        updated_at="2024-06-22T10:31:00Z",
    )


@pytest.fixture
def client():
    with ApiClient(Config(api_url=BASE + "/", token="token")) as api:
        yield api


@pytest.fixture
def mock():
    with respx.mock(base_url=BASE, assert_all_called=False) as router:
        yield router


def test_base_url_is_trimmed(client):
    assert client.base_url == BASE


def test_health_check_true(client, mock):
    mock.get("/health").respond(200)
    assert client.health_check() is True


def test_health_check_false_on_error_status(client, mock):
    mock.get("/health").respond(503)
    assert client.health_check() is False


def test_health_check_false_when_unreachable(client, mock):
    mock.get("/health").mock(side_effect=httpx.ConnectError("refused"))
    assert client.health_check() is False


def test_list_apps_sends_token_and_user_agent(client, mock):
    route = mock.get("/v1/apps").respond(200, json=[_app().to_dict()])
    apps = client.list_apps()
    assert apps == [_app()]
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer token"
    assert request.headers["User-Agent"].startswith("minifly-cli/")


def test_no_token_means_no_authorization():
    with ApiClient(Config(api_url=BASE)) as api, respx.mock(base_url=BASE) as router:
        route = router.get("/v1/apps").respond(200, json=[])
        assert api.list_apps() == []
        assert "Authorization" not in route.calls.last.request.headers


def test_create_app_posts_name(client, mock):
    route = mock.post("/v1/apps").respond(200, json=_app().to_dict())
    app = client.create_app("my-app")
    assert app.name == "my-app"
    assert json.loads(route.calls.last.request.content) == {"app_name": "my-app"}


def test_create_machine_body(client, mock):
    route = mock.post("/v1/apps/my-app/machines").respond(200, json=_machine().to_dict())
    machine = client.create_machine("my-app", "nginx:latest", None, "local")
    assert machine == _machine()
    body = json.loads(route.calls.last.request.content)
    assert body["name"] is None
    assert body["region"] == "local"
    assert body["skip_launch"] is False
    assert body["config"]["image"] == "nginx:latest"
    assert body["config"]["kill_timeout"] == 5
    assert body["config"]["guest"]["memory_mb"] == 256


def test_start_and_stop_machine(client, mock):
    start = mock.post("/v1/machines/m1/start").respond(200, json=_machine().to_dict())
    mock.post("/v1/machines/m1/stop").respond(200, json=_machine().to_dict())
    assert client.start_machine("m1").id == "m1"
    assert client.stop_machine("m1").id == "m1"
    assert json.loads(start.calls.last.request.content) == {}


def test_get_machine(client, mock):
    mock.get("/v1/machines/m2").respond(200, json=_machine("m2").to_dict())
    assert client.get_machine("m2") == _machine("m2")


def test_list_machines(client, mock):
    mock.get("/v1/apps/my-app/machines").respond(
        200, json=[_machine("a").to_dict(), _machine("b").to_dict()]
    )
    assert [m.id for m in client.list_machines("my-app")] == ["a", "b"]


@pytest.mark.parametrize("force", [True, False])
def test_delete_machine_force_flag(client, mock, force):
    route = mock.delete(url__startswith=f"{BASE}/v1/machines/m1").respond(200)
    client.delete_machine("m1", force)
    query = route.calls.last.request.url.query
    assert (query == b"force=true") is force


def test_delete_app(client, mock):
    route = mock.delete("/v1/apps/my-app").respond(204)
    result = client.delete_app("my-app")
    assert result is None
    assert route.call_count == 1
    request = route.calls.last.request
    assert request.method == "DELETE"
    assert request.headers["Authorization"] == "Bearer token"


def test_error_status_raises(client, mock):
    mock.get("/v1/apps").respond(404, text="nope")
    with pytest.raises(ApiRequestError) as info:
        client.list_apps()
    assert info.value.status == 404
    assert info.value.body == "nope"
    assert str(info.value).startswith("API request failed with status 404")


def test_delete_error_status_raises(client, mock):
    mock.delete("/v1/apps/gone").respond(500, text="boom")
    with pytest.raises(ApiRequestError) as info:
        client.delete_app("gone")
    assert info.value.status == 500


def test_bad_json_raises(client, mock):
    mock.get("/v1/machines/m1").respond(200, text="not json")
    with pytest.raises(ApiRequestError, match="Failed to parse JSON response"):
        client.get_machine("m1")


def test_wrong_shape_raises(client, mock):
    mock.get("/v1/apps").respond(200, json={"apps": []})
    with pytest.raises(ApiRequestError, match="Failed to parse JSON response"):
        client.list_apps()


def test_unreachable_server_raises(client, mock):
    mock.get("/v1/apps").mock(side_effect=httpx.ConnectError("refused"))
    with pytest.raises(ApiRequestError, match="Failed to send GET request"):
        client.list_apps()