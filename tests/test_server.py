"""Tests for the MCP/HTTP surface and the log-file CLI mode."""

import asyncio
import io
import json
import threading
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

import server
from jenkins_tools import LogAnalysisClient
from models import BuildLogs


@pytest.fixture
def fake_client(monkeypatch) -> MagicMock:
    client = MagicMock(spec=LogAnalysisClient)
    client.analyze.return_value = "1. Check the compiler error"
    monkeypatch.setattr(server.smart_debugger_mcp, "client", client)
    return client


@pytest.fixture
def http() -> TestClient:
    return TestClient(server.app)


class TestHttpEndpoints:
    """Tests for the FastAPI endpoints."""

    def test_root(self, http) -> None:
        response = http.get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "Smart Debugger Server"

    def test_health(self, http) -> None:
        response = http.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_list_tools(self, http) -> None:
        response = http.get("/tools/list")

        names = [tool["name"] for tool in response.json()["tools"]]
        assert names == ["list_models", "analyze_build_log", "analyze_jenkins_build"]

    def test_list_models(self, http) -> None:
        response = http.post("/tools/call", json={"tool_name": "list_models"})

        models = json.loads(response.json()["result"])
        assert [m["value"] for m in models] == [
            "llama3-8b-8192", "llama3-70b-8192", "mixtral-8x7b-32768", "gemma-7b-it",
        ]


class TestAnalyzeTools:
    """Tests for the analysis tools."""

    def test_analyze_build_log(self, http, fake_client) -> None:
        response = http.post("/tools/call", json={
            "tool_name": "analyze_build_log",
            "arguments": {"logText": "BUILD FAILED", "model": "Gemma 7B", "apiToken": "gsk_test"},
        })

        body = response.json()
        assert body["success"] is True
        assert "--- Smart Debugger Analysis ---" in body["result"]
        assert "1. Check the compiler error" in body["result"]
        log_text, token, model = fake_client.analyze.call_args.args
        assert log_text == "BUILD FAILED"
        assert token.get_secret_value() == "gsk_test"
        assert model == "gemma-7b-it"

    def test_unknown_model_reported_as_error_text(self, http, fake_client) -> None:
        response = http.post("/tools/call", json={
            "tool_name": "analyze_build_log",
            "arguments": {"logText": "log", "model": "gpt-4"},
        })

        result = response.json()["result"]
        assert result.startswith("Error: ")
        assert "Unknown model 'gpt-4'" in result
        fake_client.analyze.assert_not_called()

    def test_unknown_tool(self, http) -> None:
        response = http.post("/tools/call", json={"tool_name": "nope"})

        assert response.json()["result"] == "Error: Unknown tool: nope"

    def test_analyze_jenkins_build(self, http, fake_client, monkeypatch) -> None:
        fetch = MagicMock(return_value=BuildLogs(logText="Started\nBUILD FAILED"))
        monkeypatch.setattr(server.smart_debugger_mcp.jenkins_api, "fetch_build_logs_from_url", fetch)

        response = http.post("/tools/call", json={
            "tool_name": "analyze_jenkins_build",
            "arguments": {"jenkinsUrl": "https://ci.example.com/job/app/42/", "apiToken": "gsk_test"},
        })

        assert "1. Check the compiler error" in response.json()["result"]
        fetch.assert_called_once_with("https://ci.example.com/job/app/42/")
        assert fake_client.analyze.call_args.args[0] == "Started\nBUILD FAILED"


class TestLogFileMode:
    """Tests for one-shot analysis of a saved console log."""

    def test_analyze_log_file(self, tmp_path, fake_client) -> None:
        log_file = tmp_path / "build.log"
        log_file.write_text("npm ERR! missing script: build\n", encoding="utf-8")
        out = io.StringIO()

        suggestions = server.analyze_log_file(str(log_file), model="mixtral-8x7b-32768", out=out)

        assert suggestions == "1. Check the compiler error"
        assert "Key issues and suggestions:" in out.getvalue()
        log_text, _, model = fake_client.analyze.call_args.args
        assert log_text == "npm ERR! missing script: build\n"
        assert model == "mixtral-8x7b-32768"


class TestEventLoop:
    """Tests that analysis does not block the server's event loop."""

    def test_analysis_runs_in_worker_thread(self, fake_client) -> None:
        seen = {}

        def analyze(*args):
            seen["thread"] = threading.get_ident()
            return "ok"

        fake_client.analyze.side_effect = analyze

        asyncio.run(server.handle_call_tool(
            "analyze_build_log", {"logText": "log", "apiToken": "gsk_test"}
        ))

        assert seen["thread"] != threading.get_ident()

    def test_loop_keeps_running_during_analysis(self, fake_client) -> None:
        released = threading.Event()

        def analyze(*args):
            # Only the event loop can release this wait
            return "released" if released.wait(timeout=5) else "timed out"

        fake_client.analyze.side_effect = analyze

        async def scenario():
            async def release():
                await asyncio.sleep(0.01)
                released.set()

            contents, _ = await asyncio.gather(
                server.handle_call_tool("analyze_build_log", {"logText": "log", "apiToken": "gsk_test"}),
                release(),
            )
            return contents[0].text

        text = asyncio.run(scenario())

        assert "released" in text
