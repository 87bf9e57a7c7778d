# chromeservice

An HTTP and websocket backend for the console "chrome". It keeps per-user
state in SQLite and serves the dashboard layouts that the front end renders:

- favorite pages
- recently visited pages (the last ten)
- visited bundles
- self reports (job role and products of interest)
- UI preview preference
- dashboard templates built from YAML base layouts

It can also relay CloudEvents 1.0.2 envelopes to connected browsers over
websockets.

## Installation

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## Running the server

```
chromeservice
```

The command calls `chromeservice.app.main`. It opens the SQLite database,
loads the base dashboard layouts, builds the application with
`chromeservice.app.create_app` and serves it with uvicorn. Options:

| Option | Default | Meaning |
| --- | --- | --- |
| `--host` | `0.0.0.0` | address to listen on |
| `--port` | `8000` | port to listen on |
| `--database` | `chrome-service.db` | SQLite database file; tables are created on open |
| `--templates-dir` | `.` | directory holding `widget-dashboard-defaults/*.yaml` and `*.yml` |
| `--static-dir` | `./static/` | files served under `/api/chrome-service/v1/static/` |
| `--spec-dir` | `./spec/` | files served under `/api/chrome-service/v1/spec/` |
| `--log-level` | `error` | `panic`, `fatal`, `error`, `warn`, `warning`, `info`, `debug` or `trace`; unknown names mean `error` |
| `--websockets` | off | enable the websocket endpoint |

At log level `warn` or higher, the request log records only requests that
ended with status 400 or above.

## Authentication

Every route under `/api/chrome-service/v1/` requires an `x-rh-identity`
header. The static and spec paths are the exception. The header must hold
base64-encoded JSON. `IdentityMiddleware` reads `identity.user.user_id` from it
and loads or creates the matching `UserIdentity`. Identities are cached for 30
seconds. The query parameter `skip-identity-cache=true` bypasses the cache.

- A request without the header gets status 403 with `Missing authentication`.
- A header that cannot be decoded gets status 500.

## API overview

`/health` is a health probe outside the API prefix. Everything else lives
under `/api/chrome-service/v1`:

| Path | Purpose |
| --- | --- |
| `/hello-world` | simple greeting |
| `/last-visited/` | `POST {"pages": [...]}` stores the first ten pages; `GET` lists them |
| `/favorite-pages/` | `POST` marks a page; `GET` with `getAll=true` or `archived=true`/`false` lists pages |
| `/self-report/` | `GET` reads and `PATCH` updates the self report |
| `/user/` | identity data |
| `/user/intercom?app=...` | HMAC-SHA256 hashes of the account id |
| `/user/update-ui-preview` | set the UI preview flag |
| `/user/visited-bundles/` | `POST {"bundle": ...}` records a bundle; `GET` lists visited bundles |
| `/dashboard-templates/` | list the user's templates, optionally `?dashboard=landingPage` |
| `/dashboard-templates/{id}` | `PATCH` replaces non-empty layouts; `DELETE` removes the template |
| `/dashboard-templates/{id}/copy` | copy the template for the user |
| `/dashboard-templates/{id}/default` | make the template the user's default |
| `/dashboard-templates/{id}/encode` | share the template as base64 |
| `/dashboard-templates/decode` | `POST {"encodedTemplate": ...}` decodes a shared template |
| `/dashboard-templates/base-template` | all base templates, or one with `?dashboard=` |
| `/dashboard-templates/base-template/fork` | create a user template from a base template |
| `/dashboard-templates/widget-mapping` | widget metadata and default dimensions |
| `/emit-message/` | wrap a payload in a CloudEvents envelope and send it through the hub |

Dashboard errors come back as `{"errors": [...]}`. A missing template gives
status 404, a template owned by someone else gives 403, and invalid input
gives 400.

## Websockets

With `--websockets`, clients connect to `/wss/chrome-service/v1/ws`. They
authenticate with a `cs_jwt` cookie, whose payload is read but not verified.
The `cloudevents.json` subprotocol is accepted when requested.

`ConnectionHub` indexes clients by user, role, organization and username.
`emit` delivers a message once to each matching connection. `broadcast`
delivers it to every client.

## Library use

You can use the building blocks without the HTTP layer:

```python
from chromeservice.database import Database
from chromeservice.dashboards import DashboardService
from chromeservice.layouts import load_base_layouts
from chromeservice.models import decode_dashboard_base64

db = Database(":memory:")
dashboards = DashboardService(db, load_base_layouts("./"))
templates = dashboards.get_templates(1, "landingPage")
encoded = dashboards.encode_template(1, templates[0].id)
copy = decode_dashboard_base64(encoded)
```

Encoding validates the template. The example therefore needs a
`landingPage` base layout under `./widget-dashboard-defaults/`.

Failures raise these exceptions:

- `chromeservice.models.ValidationError` for validation problems.
- `chromeservice.responses.NotAuthorizedError` when an ownership check fails.
- `chromeservice.responses.RecordNotFoundError` when a record is missing.

## What this package does not do

- Storage is SQLite only; there is no PostgreSQL support and no separate
  migration command.
- Websockets are switched on with `--websockets`; there is no feature-flag
  service.
- Messages reach the hub only through `/emit-message/` or connected
  websockets; there is no message-queue consumer.
- There is no metrics endpoint.
- There are no tools for validating navigation and module JSON files,
  generating service listings or publishing a search index.