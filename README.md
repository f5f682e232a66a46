# minifly

Tools for developing against a machines-style hosting platform on your own computer:

- a command line, `minifly`, for managing apps and machines through an API server;
- `minifly.client.ApiClient`, an HTTP client for that API;
- data models for apps, machines, volumes and leases with JSON mapping
  (`minifly.models`), and the wire types the client exchanges (`minifly.api_types`);
- LiteFS helpers: `minifly.litefs_config.LiteFSConfig` reads and writes `litefs.yml`
  and adapts a production file for local use; `minifly.litefs_process` and
  `minifly.litefs_manager` start and stop `litefs mount` processes, one per machine;
  `minifly.litefs_server` is a small HTTP control API for them;
- `minifly.internal_dns.InternalDnsResolver`, an in-memory resolver for `.internal` names;
- `minifly.structured_logging`, human-readable or JSON logging set-up.

## Installation

```
pip install .
```

Python 3.11 or later is required.

## Command line

```
minifly init
minifly status
minifly apps list
minifly apps create my-app
minifly apps delete my-app
minifly machines list --app my-app
minifly machines create --app my-app --image nginx:latest [--name NAME] [--region REGION]
minifly machines start <machine-id>
minifly machines stop <machine-id>
minifly machines delete <machine-id> [--force]
minifly serve [--port 4280] [--daemon] [--dev]
minifly dev [PATH] [--port 4280]
minifly deploy [PATH] [--watch]
minifly logs <machine-id> [--follow] [--region REGION]
minifly proxy <machine-id> [--port 8080]
minifly stop [--force]
```

Global options `--api-url`, `--token` and `--verbose` come before the command,
for example `minifly --api-url http://localhost:4280 apps list`.

`minifly init` writes a default `config.toml` to the user configuration directory.
`apps` and `machines` commands first check the server's `/health` endpoint and say so
if it is not reachable. `minifly status` reports whether the server answers.

Settings are read from that `config.toml` (`api_url`, `token`, `default_region`,
`timeout`, `verify_ssl`) and may be overridden by the environment variables
`MINIFLY_API_URL`, `MINIFLY_TOKEN`, `MINIFLY_REGION`, `MINIFLY_TIMEOUT` and
`MINIFLY_VERIFY_SSL`. Set `MINIFLY_DEBUG` (or pass `--verbose`) to turn on logging,
`MINIFLY_LOG_JSON` for JSON log lines and `MINIFLY_LOG_LEVEL` for the level filter,
for example `minifly=debug`.

## Library use

```python
from minifly.config import Config
from minifly.client import ApiClient

config = Config.load()
with ApiClient(config) as client:
    if client.health_check():
        client.create_app("my-app")
        machine = client.create_machine("my-app", "nginx:latest", None, None)
        print(machine.id)
```

Failed requests raise `minifly.client.ApiRequestError`; every error the package raises
derives from `minifly.errors.MiniflyError`.

Resolving internal names:

```python
from minifly.internal_dns import InternalDnsResolver

resolver = InternalDnsResolver()
resolver.register_machine("myapp", "machine-1", "172.19.0.2")
resolver.resolve("myapp.internal")               # [IPv4Address('172.19.0.2')]
resolver.resolve("machine-1.vm.myapp.internal")  # [IPv4Address('172.19.0.2')]
resolver.resolve("unknown.internal")             # []
```

Adapting a production LiteFS configuration:

```python
from pathlib import Path
from minifly.litefs_config import LiteFSConfig

text = Path("litefs.yml").read_text()
config = LiteFSConfig.from_production_config(text, "machine-123", "myapp")
print(config.to_yaml())
```

Consul leases become static, this machine becomes the primary, and the mount and data
directories move under `MINIFLY_DATA_DIR` (default `./minifly-data`), where they are
created.

Running the LiteFS control server:

```python
from minifly.litefs_manager import LiteFSManager
from minifly.litefs_server import run_server

run_server(LiteFSManager("./litefs-base"), 20203)
```

It offers `GET /health`, `GET /instances`, `GET /instances/{id}`,
`POST /instances/{id}/start` (body `{"is_primary": true}`), `POST /instances/{id}/stop`
and `GET /instances/{id}/status`. LiteFS itself must be installed, either as
`bin/litefs` under the base directory or as `litefs` on `PATH`; without it, starting
an instance does nothing.

## What this package does not do

It contains no Machines API server and no container management. The `apps` and
`machines` commands need such a server to be running at the configured URL.
`minifly serve` only checks whether a server answers on the port, prints what would
be started and waits for Ctrl+C. `dev`, `deploy`, `logs`, `proxy` and `stop` print
their settings and guidance; they do not deploy, stream logs, proxy traffic or stop
anything.

## Tests

```
pip install ".[test]"
pytest
```