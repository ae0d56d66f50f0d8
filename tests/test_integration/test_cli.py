"""End-to-end tests for the edgectl command line.

The application is built with :func:`edgectl.app.create_app` from an
in-memory registry (or the bundled definitions) and driven through Typer's
``CliRunner``. Network access goes through an ``httpx.MockTransport``
injected into the dispatcher.
"""

from __future__ import annotations

import functools
import json
from pathlib import Path
from typing import Any, Callable
from unittest.mock import patch

import httpx
import pytest
import typer

from edgectl.app import create_app
from edgectl.client.dispatcher import Dispatcher
from edgectl.commands.api import RESERVED_NAMES, register_category_commands
from edgectl.config import save_global_config
from edgectl.definitions import Registry
from edgectl.definitions.loader import parse_definition_set
from edgectl.models import GlobalConfig, RequestConfig, TunnelState

ZONE_ID = "023e105f4ecef8ad9ca31a8372d0c353"
TUNNEL_ID = "f70ff985-a4ef-4643-bbbc-4a0ed4fc8415"


def _envelope(result: Any = None, success: bool = True, **extra: Any) -> dict[str, Any]:
    return {"success": success, "errors": [], "messages": [], "result": result, **extra}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app(isolated_config: Path, registry: Registry):
    return create_app(registry)


@pytest.fixture
def builtin_app(isolated_config: Path, builtin_registry: Registry):
    return create_app(builtin_registry)


@pytest.fixture
def api_token(monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setenv("CF_API_TOKEN", "test-token")
    return "test-token"


@pytest.fixture
def mock_api(monkeypatch: pytest.MonkeyPatch) -> Callable[..., list[httpx.Request]]:
    """Route every dispatcher request to *handler*; returns the request log."""

    def _install(handler: Callable[[httpx.Request], httpx.Response]) -> list[httpx.Request]:
        requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        factory = functools.partial(Dispatcher, transport=httpx.MockTransport(_record))
        monkeypatch.setattr("edgectl.commands.common.Dispatcher", factory)
        return requests

    return _install


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


class TestGlobalOptions:
    def test_version(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "edgectl 0.4.0" in result.output

    def test_unknown_format_rejected(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--format", "yaml", "endpoints", "list"])
        assert result.exit_code == 2

    def test_bad_env_format(self, cli_runner, app, monkeypatch) -> None:
        monkeypatch.setenv("CF_OUTPUT_FORMAT", "yaml")
        result = cli_runner.invoke(app, ["--no-color", "endpoints", "list"])
        assert result.exit_code == 1
        assert "Unknown output format" in result.output

    def test_category_commands_registered(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "dns" in result.output
        assert "raw" in result.output


# ---------------------------------------------------------------------------
# Category commands
# ---------------------------------------------------------------------------


class TestCategoryCommands:
    def test_dry_run_without_credentials(self, cli_runner, app) -> None:
        result = cli_runner.invoke(
            app, ["--dry-run", "--no-color", "dns", "list", ZONE_ID, "--type", "A", "--proxied"]
        )
        assert result.exit_code == 0, result.output
        assert f"[dry-run] GET https://api.cloudflare.com/client/v4/zones/{ZONE_ID}/dns_records" in result.output
        assert "Param: type=A" in result.output
        assert "Param: proxied=true" in result.output

    def test_default_zone_from_global_option(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["-n", "--no-color", "--zone", ZONE_ID, "dns", "get", "rec1"])
        assert result.exit_code == 0, result.output
        assert f"/zones/{ZONE_ID}/dns_records/rec1" in result.output

    def test_unknown_verb(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--no-color", "dns", "lst", ZONE_ID])
        assert result.exit_code == 2
        assert "Unknown command: dns lst" in result.output
        assert "did you mean: list" in result.output

    def test_validation_before_network(self, cli_runner, app, api_token, mock_api) -> None:
        requests = mock_api(lambda request: httpx.Response(200, json=_envelope([])))
        result = cli_runner.invoke(app, ["--no-color", "dns", "list", ZONE_ID, "--per-page", "abc"])
        assert result.exit_code == 2
        assert "per_page" in result.output
        assert requests == []

    def test_validation_before_zone_lookup(self, cli_runner, app, api_token, mock_api) -> None:
        requests = mock_api(lambda request: httpx.Response(200, json=_envelope([{"id": ZONE_ID}])))
        result = cli_runner.invoke(
            app,
            [
                "--no-color",
                "dns",
                "create",
                "example.com",
                "--type",
                "A",
                "--name",
                "www",
                "--content",
                "192.0.2.1",
                "--ttl",
                "abc",
            ],
        )
        assert result.exit_code == 2
        assert "ttl" in result.output
        assert requests == []

    def test_missing_required(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["-n", "--no-color", "dns", "create", ZONE_ID, "--type", "A"])
        assert result.exit_code == 2
        assert "Missing required parameter 'name'" in result.output

    def test_missing_credentials(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--no-color", "dns", "list", ZONE_ID])
        assert result.exit_code == 1
        assert "No credentials configured" in result.output

    def test_json_result(self, cli_runner, app, api_token, mock_api) -> None:
        records = [{"id": "r1", "type": "A", "name": "www.example.com", "content": "192.0.2.1"}]
        requests = mock_api(lambda request: httpx.Response(200, json=_envelope(records)))

        result = cli_runner.invoke(app, ["--json", "--quiet", "dns", "list", ZONE_ID, "--type", "A"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == records
        assert requests[0].headers["Authorization"] == "Bearer test-token"
        assert requests[0].url.params["type"] == "A"

    def test_zone_name_resolved(self, cli_runner, app, api_token, mock_api) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/zones"):
                return httpx.Response(200, json=_envelope([{"id": ZONE_ID, "name": "example.com"}]))
            return httpx.Response(200, json=_envelope([]))

        requests = mock_api(handler)
        result = cli_runner.invoke(app, ["--json", "--quiet", "dns", "list", "example.com"])

        assert result.exit_code == 0, result.output
        assert requests[1].url.path == f"/client/v4/zones/{ZONE_ID}/dns_records"

    def test_all_pages(self, cli_runner, app, api_token, mock_api) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params.get("page", "1"))
            info = {"page": page, "per_page": 1, "total_pages": 2, "count": 1, "total_count": 2}
            return httpx.Response(200, json=_envelope([{"id": f"r{page}"}], result_info=info))

        requests = mock_api(handler)
        result = cli_runner.invoke(app, ["--json", "--quiet", "dns", "list", ZONE_ID, "--all"])

        assert result.exit_code == 0, result.output
        assert len(requests) == 2
        assert json.loads(result.stdout) == [{"id": "r1"}, {"id": "r2"}]

    def test_all_pages_ignored_for_single_object(self, cli_runner, app, api_token, mock_api) -> None:
        info = {"page": 1, "per_page": 1, "total_pages": 3}
        requests = mock_api(lambda request: httpx.Response(200, json=_envelope([{"id": "r1"}], result_info=info)))
        result = cli_runner.invoke(app, ["--json", "--quiet", "dns", "get", ZONE_ID, "r1", "--all"])
        assert result.exit_code == 0, result.output
        assert len(requests) == 1

    def test_provider_not_found(self, cli_runner, app, api_token, mock_api) -> None:
        mock_api(
            lambda request: httpx.Response(
                404, json={"success": False, "errors": [{"code": 81044, "message": "Record not found"}]}
            )
        )
        result = cli_runner.invoke(app, ["--no-color", "dns", "get", ZONE_ID, "nope"])
        assert result.exit_code == 4
        assert "[81044] Record not found" in result.output

    def test_network_error_exit_code(self, cli_runner, app, api_token, mock_api) -> None:
        save_global_config(GlobalConfig(request=RequestConfig(max_retries=1, backoff_base=0)))
        requests = mock_api(lambda request: httpx.Response(503, text="unavailable"))
        result = cli_runner.invoke(app, ["--no-color", "dns", "list", ZONE_ID])
        assert result.exit_code == 6
        assert len(requests) == 2

    def test_call_command(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["-n", "--no-color", "call", "dns", "delete", ZONE_ID, "rec1"])
        assert result.exit_code == 0, result.output
        assert f"[dry-run] DELETE https://api.cloudflare.com/client/v4/zones/{ZONE_ID}/dns_records/rec1" in result.output

    def test_builtin_zones_list(self, cli_runner, builtin_app) -> None:
        result = cli_runner.invoke(builtin_app, ["-n", "--no-color", "zones", "list", "--status", "active"])
        assert result.exit_code == 0, result.output
        assert "[dry-run] GET https://api.cloudflare.com/client/v4/zones" in result.output
        assert "Param: status=active" in result.output

    def test_account_looked_up_when_unset(self, cli_runner, builtin_app, api_token, mock_api) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/client/v4/accounts":
                return httpx.Response(200, json=_envelope([{"id": "acc1", "name": "Main"}]))
            return httpx.Response(200, json=_envelope({"response": "A content delivery network."}))

        requests = mock_api(handler)
        result = cli_runner.invoke(
            builtin_app,
            ["--json", "--quiet", "ai", "chat", "meta", "llama-3.2-1b-instruct", "--prompt", "What is a CDN?"],
        )
        assert result.exit_code == 0, result.output
        assert len(requests) == 2
        assert requests[1].method == "POST"
        assert requests[1].url.path == "/client/v4/accounts/acc1/ai/run/@cf/meta/llama-3.2-1b-instruct"
        assert json.loads(requests[1].content) == {"prompt": "What is a CDN?"}

    def test_configured_account_fills_path(self, cli_runner, builtin_app, api_token, mock_api, monkeypatch) -> None:
        monkeypatch.setenv("CF_ACCOUNT_ID", "acc9")
        requests = mock_api(lambda request: httpx.Response(200, json=_envelope("hello")))
        result = cli_runner.invoke(builtin_app, ["--json", "--quiet", "kv", "get", "ns1", "greeting"])
        assert result.exit_code == 0, result.output
        assert len(requests) == 1
        assert requests[0].url.path == "/client/v4/accounts/acc9/storage/kv/namespaces/ns1/values/greeting"

    def test_hyperdrive_origin_nested(self, cli_runner, builtin_app, api_token, mock_api, monkeypatch) -> None:
        monkeypatch.setenv("CF_ACCOUNT_ID", "acc9")
        requests = mock_api(lambda request: httpx.Response(200, json=_envelope({"id": "hd1"})))
        result = cli_runner.invoke(
            builtin_app,
            [
                "--json", "--quiet", "hyperdrive", "create",
                "--name", "app", "--scheme", "postgres", "--host", "db.example.com", "--port", "5432",
                "--database", "app", "--user", "app", "--password", "s3cret",
            ],
        )
        assert result.exit_code == 0, result.output
        assert json.loads(requests[0].content) == {
            "name": "app",
            "origin": {
                "scheme": "postgres",
                "host": "db.example.com",
                "port": 5432,
                "database": "app",
                "user": "app",
                "password": "s3cret",
            },
        }


class TestReservedCategories:
    def test_shadowed_category_only_reachable_through_call(self) -> None:
        custom = parse_definition_set(
            {
                "name": "config",
                "endpoints": [{"name": "ping", "method": "GET", "path": "/ping"}],
            }
        )
        registry = Registry.build([custom])
        registered = register_category_commands(typer.Typer(), registry)
        assert registered == []
        assert "config" in RESERVED_NAMES


# ---------------------------------------------------------------------------
# raw
# ---------------------------------------------------------------------------


class TestRaw:
    def test_raw_with_zone_substitution(self, cli_runner, app) -> None:
        result = cli_runner.invoke(
            app,
            [
                "-n",
                "--no-color",
                "--zone",
                ZONE_ID,
                "raw",
                "/zones/:zone_id/settings/ssl",
                "-X",
                "PATCH",
                "-d",
                '{"value": "strict"}',
            ],
        )
        assert result.exit_code == 0, result.output
        assert f"[dry-run] PATCH https://api.cloudflare.com/client/v4/zones/{ZONE_ID}/settings/ssl" in result.output
        assert '"value": "strict"' in result.output

    def test_raw_without_zone(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["-n", "--no-color", "raw", "/zones/:zone_id/settings"])
        assert result.exit_code == 2
        assert "--zone" in result.output

    def test_raw_bad_method(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["-n", "--no-color", "raw", "/zones", "-X", "TRACE"])
        assert result.exit_code == 2

    def test_raw_request(self, cli_runner, app, api_token, mock_api) -> None:
        requests = mock_api(lambda request: httpx.Response(200, json=_envelope({"id": "tok", "status": "active"})))
        result = cli_runner.invoke(app, ["--json", "--quiet", "raw", "/user/tokens/verify"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"id": "tok", "status": "active"}
        assert requests[0].method == "GET"


# ---------------------------------------------------------------------------
# endpoints
# ---------------------------------------------------------------------------


class TestEndpointsCommands:
    def test_list_json(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "endpoints", "list"])
        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert [r["name"] for r in rows] == ["create", "delete", "get", "list"]
        assert rows[3]["path"] == "/zones/{zone_id}/dns_records"

    def test_list_unknown_category(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--no-color", "endpoints", "list", "nope"])
        assert result.exit_code == 0
        assert "No endpoints registered in nope" in result.output

    def test_show_json(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "endpoints", "show", "dns", "list"])
        assert result.exit_code == 0, result.output
        definition = json.loads(result.stdout)
        assert definition["method"] == "GET"
        assert definition["params"][1]["enum"] == ["A", "AAAA", "CNAME"]

    def test_show_unknown(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--no-color", "endpoints", "show", "dns", "lsit"])
        assert result.exit_code == 2
        assert "endpoints list" in result.output

    def test_check_ok(self, cli_runner, app, write_definition, isolated_config) -> None:
        write_definition(
            "zones.json",
            {"name": "zones", "endpoints": [{"name": "list", "method": "GET", "path": "/zones"}]},
        )
        result = cli_runner.invoke(app, ["--no-color", "endpoints", "check", str(isolated_config / "endpoints")])
        assert result.exit_code == 0, result.output
        assert "1 definition file(s) OK" in result.output

    def test_check_rejects(self, cli_runner, app, write_definition, isolated_config) -> None:
        write_definition("bad.json", {"name": "zones", "endpoints": [{"name": "get", "method": "GET", "path": "/zones/{zone_id}"}]})
        result = cli_runner.invoke(app, ["--no-color", "endpoints", "check", str(isolated_config / "endpoints")])
        assert result.exit_code == 7
        assert "rejected" in result.output


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_set_and_show(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--no-color", "config", "set", "default_zone", "example.com"])
        assert result.exit_code == 0, result.output

        result = cli_runner.invoke(app, ["--no-color", "config", "set", "request.max_retries", "5"])
        assert result.exit_code == 0, result.output

        result = cli_runner.invoke(app, ["--json", "--quiet", "config", "show"])
        assert result.exit_code == 0, result.output
        settings = json.loads(result.stdout)
        assert settings["default_zone"] == "example.com"
        assert settings["request"]["max_retries"] == 5

    def test_set_unknown_key(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--no-color", "config", "set", "nope.key", "1"])
        assert result.exit_code == 2

    def test_set_bad_integer(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--no-color", "config", "set", "request.max_retries", "many"])
        assert result.exit_code == 2
        assert "Expected integer" in result.output

    def test_reset(self, cli_runner, app) -> None:
        cli_runner.invoke(app, ["config", "set", "default_zone", "example.com"])
        result = cli_runner.invoke(app, ["--no-color", "config", "reset", "--force"])
        assert result.exit_code == 0
        assert "reset to defaults" in result.output

    def test_paths(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--json", "config", "paths"])
        assert result.exit_code == 0
        assert "tunnel state" in result.stdout

    def test_verify_token(self, cli_runner, app, api_token, mock_api) -> None:
        requests = mock_api(lambda request: httpx.Response(200, json=_envelope({"id": "t1", "status": "active"})))
        result = cli_runner.invoke(app, ["--no-color", "config", "test"])
        assert result.exit_code == 0, result.output
        assert "Credentials are valid." in result.output
        assert requests[0].url.path == "/client/v4/user/tokens/verify"

    def test_inactive_token(self, cli_runner, app, api_token, mock_api) -> None:
        mock_api(lambda request: httpx.Response(200, json=_envelope({"id": "t1", "status": "disabled"})))
        result = cli_runner.invoke(app, ["--no-color", "config", "test"])
        assert result.exit_code == 3

    def test_rejected_token(self, cli_runner, app, api_token, mock_api) -> None:
        mock_api(
            lambda request: httpx.Response(
                401, json={"success": False, "errors": [{"code": 1000, "message": "Invalid API Token"}]}
            )
        )
        result = cli_runner.invoke(app, ["--no-color", "config", "test"])
        assert result.exit_code == 3
        assert "Invalid API Token" in result.output


# ---------------------------------------------------------------------------
# analytics
# ---------------------------------------------------------------------------


class TestAnalyticsCommands:
    def test_requires_zone(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["-n", "--no-color", "analytics", "top-urls"])
        assert result.exit_code == 2
        assert "No zone given" in result.output

    def test_dry_run_prints_query(self, cli_runner, app) -> None:
        result = cli_runner.invoke(
            app, ["-n", "--no-color", "analytics", "errors", "--zone", ZONE_ID, "--since", "7d", "--limit", "5"]
        )
        assert result.exit_code == 0, result.output
        assert "[dry-run] POST https://api.cloudflare.com/client/v4/graphql" in result.output
        assert "edgeResponseStatus_geq: 400" in result.output
        assert "No data found" in result.output

    def test_bad_window(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["-n", "analytics", "cache", "--zone", ZONE_ID, "--since", "2w"])
        assert result.exit_code == 2

    def test_report_rows(self, cli_runner, app, api_token, mock_api) -> None:
        data = {
            "viewer": {
                "zones": [
                    {
                        "httpRequestsAdaptiveGroups": [
                            {"count": 10, "dimensions": {"clientCountryName": "DE"}},
                            {"count": 4, "dimensions": {"clientCountryName": "FR"}},
                        ]
                    }
                ]
            }
        }
        mock_api(lambda request: httpx.Response(200, json={"data": data, "errors": None}))
        result = cli_runner.invoke(app, ["--json", "--quiet", "analytics", "top-countries", "--zone", ZONE_ID])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [
            {"count": 10, "clientCountryName": "DE"},
            {"count": 4, "clientCountryName": "FR"},
        ]

    def test_top_runs_reports_concurrently(self, cli_runner, app, api_token, mock_api) -> None:
        requests = mock_api(lambda request: httpx.Response(200, json={"data": {"viewer": {"zones": [{}]}}}))
        result = cli_runner.invoke(app, ["--json", "--quiet", "analytics", "top", "--zone", ZONE_ID])
        assert result.exit_code == 0, result.output
        assert len(requests) == 5
        sections = json.loads(result.stdout)
        assert list(sections) == ["top-urls", "top-ips", "top-countries", "errors", "cache"]

    def test_graphql_error(self, cli_runner, app, api_token, mock_api) -> None:
        mock_api(lambda request: httpx.Response(200, json={"data": None, "errors": [{"message": "zone not authorized"}]}))
        result = cli_runner.invoke(app, ["--no-color", "analytics", "bots", "--zone", ZONE_ID])
        assert result.exit_code == 5
        assert "zone not authorized" in result.output

    def test_custom_query(self, cli_runner, app, api_token, mock_api, isolated_config) -> None:
        query_file = isolated_config / "q.graphql"
        query_file.write_text("{ viewer { accounts { accountTag } } }")
        requests = mock_api(lambda request: httpx.Response(200, json={"data": {"viewer": {"accounts": []}}}))
        result = cli_runner.invoke(app, ["--json", "--quiet", "analytics", "query", f"@{query_file}"])
        assert result.exit_code == 0, result.output
        assert json.loads(requests[0].content)["query"] == "{ viewer { accounts { accountTag } } }"
        assert json.loads(result.stdout) == {"viewer": {"accounts": []}}

    def test_custom_query_json_document(self, cli_runner, app, api_token, mock_api, isolated_config) -> None:
        request_file = isolated_config / "request.json"
        request_file.write_text(
            json.dumps({"query": "query ($tag: string) { viewer { zones(filter: {zoneTag: $tag}) { zoneTag } } }",
                        "variables": {"tag": ZONE_ID}})
        )
        requests = mock_api(lambda request: httpx.Response(200, json={"data": {"viewer": {"zones": []}}}))
        result = cli_runner.invoke(app, ["--json", "--quiet", "analytics", "query", f"@{request_file}"])
        assert result.exit_code == 0, result.output
        sent = json.loads(requests[0].content)
        assert sent["query"].startswith("query ($tag: string)")
        assert sent["variables"] == {"tag": ZONE_ID}

    def test_custom_query_json_without_query(self, cli_runner, app, api_token, mock_api, isolated_config) -> None:
        request_file = isolated_config / "request.json"
        request_file.write_text(json.dumps({"variables": {"tag": ZONE_ID}}))
        requests = mock_api(lambda request: httpx.Response(200, json={"data": {}}))
        result = cli_runner.invoke(app, ["--no-color", "analytics", "query", f"@{request_file}"])
        assert result.exit_code == 2
        assert "'query'" in result.output
        assert requests == []


# ---------------------------------------------------------------------------
# tunnel
# ---------------------------------------------------------------------------


class TestTunnelCommands:
    def test_install_hint(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["tunnel", "install-hint"])
        assert result.exit_code == 0
        assert "cloudflared" in result.stdout

    def test_start_needs_tunnel_or_token(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--no-color", "tunnel", "start"])
        assert result.exit_code == 2

    def test_start_dry_run(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["-n", "--no-color", "tunnel", "start", "--token", "secret-token"])
        assert result.exit_code == 0, result.output
        assert "tunnel run --token ***" in result.output
        assert "secret-token" not in result.output

    def test_start_with_token_from_env(self, cli_runner, app, monkeypatch) -> None:
        monkeypatch.setenv("CF_TUNNEL_TOKEN", "env-token")
        state = TunnelState(pid=42, started_at="2026-01-01T00:00:00Z", binary="/usr/bin/cloudflared")
        with patch("edgectl.commands.tunnel.TunnelSupervisor.start", return_value=state) as start:
            result = cli_runner.invoke(app, ["--no-color", "tunnel", "start"])
        assert result.exit_code == 0, result.output
        start.assert_called_once_with("env-token", background=True)
        assert "PID: 42" in result.output

    def test_start_by_name_fetches_token(self, cli_runner, app, api_token, mock_api, monkeypatch) -> None:
        monkeypatch.setenv("CF_ACCOUNT_ID", "acc1")

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/token"):
                return httpx.Response(200, json=_envelope("fetched-token"))
            assert request.url.params["name"] == "my-tunnel"
            return httpx.Response(200, json=_envelope([{"id": TUNNEL_ID, "name": "my-tunnel"}]))

        requests = mock_api(handler)
        with patch("edgectl.commands.tunnel.TunnelSupervisor.start", return_value=None) as start:
            result = cli_runner.invoke(app, ["--no-color", "tunnel", "start", "my-tunnel", "--foreground"])

        assert result.exit_code == 0, result.output
        start.assert_called_once_with("fetched-token", background=False)
        assert requests[1].url.path == f"/client/v4/accounts/acc1/cfd_tunnel/{TUNNEL_ID}/token"

    def test_start_unknown_tunnel(self, cli_runner, app, api_token, mock_api, monkeypatch) -> None:
        monkeypatch.setenv("CF_ACCOUNT_ID", "acc1")
        mock_api(lambda request: httpx.Response(200, json=_envelope([])))
        result = cli_runner.invoke(app, ["--no-color", "tunnel", "start", "ghost"])
        assert result.exit_code == 2
        assert "Tunnel not found: ghost" in result.output

    def test_stop_nothing_running(self, cli_runner, app) -> None:
        result = cli_runner.invoke(app, ["--no-color", "tunnel", "stop"])
        assert result.exit_code == 0
        assert "No running tunnel found." in result.output

    def test_status_not_installed(self, cli_runner, app) -> None:
        with patch("edgectl.tunnel.supervisor.find_binary", return_value=None):
            result = cli_runner.invoke(app, ["--json", "--quiet", "tunnel", "status"])
        assert result.exit_code == 0, result.output
        status = json.loads(result.stdout)
        assert status["installed"] is False
        assert status["running"] is False
