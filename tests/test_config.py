import tomllib

import pytest

from minifly.config import Config
from minifly.errors import InvalidConfigurationError

ENV_VARS = (
    "MINIFLY_API_URL",
    "MINIFLY_TOKEN",
    "MINIFLY_REGION",
    "MINIFLY_TIMEOUT",
    "MINIFLY_VERIFY_SSL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    assert Config() == Config(
        api_url="http://localhost:4280",
        token=None,
        default_region="local",
        timeout=30,
        verify_ssl=True,
    )


def test_default_path_location():
    path = Config.default_path()
    assert path.name == "config.toml"
    assert path.parent.name == "minifly"


def test_load_missing_file_gives_defaults(tmp_path):
    assert Config.load(tmp_path / "absent.toml") == Config()


def test_save_and_load_round_trip(tmp_path):
    config = Config(
        api_url="http://example.com:9000",
        token="token",
        default_region="ams",
        timeout=5,
        verify_ssl=False,
    )
    path = tmp_path / "nested" / "config.toml"
    assert config.save(path) == path
    assert Config.load_from_file(path) == config


def test_save_omits_unset_token(tmp_path):
    path = tmp_path / "config.toml"
    Config().save(path)
    data = tomllib.loads(path.read_text(encoding="utf-8"))
    assert "token" not in data
    assert data["api_url"] == "http://localhost:4280"


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("MINIFLY_API_URL", "http://example.com:1234")
    monkeypatch.setenv("MINIFLY_TOKEN", "token")
    monkeypatch.setenv("MINIFLY_REGION", "fra")
    monkeypatch.setenv("MINIFLY_TIMEOUT", "15")
    monkeypatch.setenv("MINIFLY_VERIFY_SSL", "false")
    config = Config.load(tmp_path / "absent.toml")
    assert config.api_url == "http://example.com:1234"
    assert config.token == "token"
    assert config.default_region == "fra"
    assert config.timeout == 15
    assert config.verify_ssl is False


@pytest.mark.parametrize("value", ["abc", "-3", "1.5", ""])
def test_bad_timeout_falls_back_to_default(tmp_path, monkeypatch, value):
    monkeypatch.setenv("MINIFLY_TIMEOUT", value)
    assert Config.load(tmp_path / "absent.toml").timeout == Config().timeout


@pytest.mark.parametrize("value", ["FALSE", "no", "0"])
def test_unparsable_verify_ssl_falls_back_to_true(tmp_path, monkeypatch, value):
    monkeypatch.setenv("MINIFLY_VERIFY_SSL", value)
    assert Config.load(tmp_path / "absent.toml").verify_ssl is True


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    Config(default_region="ams").save(path)
    monkeypatch.setenv("MINIFLY_REGION", "fra")
    assert Config.load(path).default_region == "fra"


def test_load_from_file_rejects_bad_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("api_url = = nope", encoding="utf-8")
    with pytest.raises(InvalidConfigurationError):
        Config.load_from_file(path)


def test_load_from_file_requires_fields(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('api_url = "http://localhost:4280"\n', encoding="utf-8")
    with pytest.raises(InvalidConfigurationError, match="default_region"):
        Config.load_from_file(path)


def test_load_from_file_checks_types(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        'api_url = "u"\ndefault_region = "r"\ntimeout = "x"\nverify_ssl = true\n',
        encoding="utf-8",
    )
    with pytest.raises(InvalidConfigurationError, match="timeout"):
        Config.load_from_file(path)


def test_load_ignores_broken_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("not toml at all [[", encoding="utf-8")
    assert Config.load(path) == Config()


def test_init_writes_defaults(tmp_path, capsys):
    path = tmp_path / "minifly" / "config.toml"
    written = Config.init(path)
    assert written == path
    assert Config.load_from_file(path) == Config()
    out = capsys.readouterr().out
    assert str(path) in out
    assert "Edit the config file to customize settings" in out