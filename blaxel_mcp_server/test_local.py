import asyncio
import subprocess
import threading
from unittest.mock import patch

import pytest

from blaxel_mcp_server import local
from blaxel_mcp_server.client import ApiResponse
from blaxel_mcp_server.config import Config
from blaxel_mcp_server.errors import ExternalProcessError, ToolError
from blaxel_mcp_server.tooling import ToolContext, ToolRegistry


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class _FakeClient:
    def __init__(self, templates):
        self.templates = templates

    def list_templates(self):
        return ApiResponse(200, self.templates)


def _call(name, args, config=None, client=None):
    config = config or Config()
    registry = ToolRegistry()
    local.register_tools(registry, config)
    result = _run(registry.dispatch(name, args, ToolContext(config=config, client=client)))
    return result.isError, result.content[0].text


def _completed(returncode=0, stdout=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout)


# --- command building ---


def test_create_command_adds_workspace_and_template():
    config = Config(workspace="acme")
    assert local.build_create_command("create-job", "my-job", config, "tpl") == [
        "create-job", "my-job", "-y", "--workspace", "acme", "--template", "tpl",
    ]
    assert local.build_create_command("create-job", "my-job", Config()) == ["create-job", "my-job", "-y"]


def test_deploy_command_flags():
    argv = local.build_deploy_command(
        Config(workspace="acme"), directory="app", name="svc", skip_build=True, dry_run=True
    )
    assert argv == [
        "deploy", "--workspace", "acme", "--directory", "app", "--name", "svc",
        "--skip-build", "--dryrun",
    ]


# --- run_cli ---


def test_run_cli_merges_output_and_returns_it():
    with patch("blaxel_mcp_server.local.subprocess.run", return_value=_completed(0, "done\n")) as run:
        assert local.run_cli("bl", ["deploy"]) == "done\n"
    args, kwargs = run.call_args
    assert args[0] == ["bl", "deploy"]
    assert kwargs["stderr"] == subprocess.STDOUT
    assert kwargs["check"] is False


def test_run_cli_non_zero_exit_carries_raw_output():
    with patch("blaxel_mcp_server.local.subprocess.run", return_value=_completed(2, "boom: bad flag")):
        with pytest.raises(ExternalProcessError) as excinfo:
            local.run_cli("bl", ["deploy"])
    assert str(excinfo.value) == "boom: bad flag"
    assert excinfo.value.returncode == 2


def test_run_cli_missing_executable():
    with patch("blaxel_mcp_server.local.subprocess.run", side_effect=FileNotFoundError("bl")):
        with pytest.raises(ToolError) as excinfo:
            local.run_cli("bl", ["deploy"])
    assert "executable not found" in str(excinfo.value)


# --- quick start guide ---


def test_quick_start_guide_single_topic():
    is_error, text = _call("local_quick_start_guide", {"resourceType": "job"})
    assert not is_error
    assert text == local.GUIDES["job"]


def test_quick_start_guide_all_concatenates_every_guide():
    _, text = _call("local_quick_start_guide", {})
    assert text.startswith("Quick Start Guide for All Blaxel Resources:\n\n")
    for guide in local.GUIDES.values():
        assert guide + "\n\n---\n\n" in text


def test_quick_start_guide_rejects_unknown_enum_value():
    is_error, text = _call("local_quick_start_guide", {"resourceType": "cluster"})
    assert is_error
    assert text.startswith("invalid arguments: resourceType:")


# --- templates ---


TEMPLATES = [
    {
        "name": "template-langgraph-py",
        "description": "LangGraph agent",
        "topics": ["agent", "python"],
        "starCount": 12,
        "downloadCount": 340,
    },
    {"name": "template-batch", "topics": ["jobs"]},
    {"description": "nameless"},
]


def test_list_templates_for_topic():
    _, text = _call("local_list_templates", {"resourceType": "agent"}, client=_FakeClient(TEMPLATES))
    assert text.startswith("Available templates for agent:\n\n")
    assert "• template-langgraph-py - LangGraph agent (⭐ 12, 📥 340)\n  Topics: agent, python" in text
    assert "template-batch" not in text
    assert text.endswith("by specifying the template name.")


def test_list_templates_none_match():
    _, text = _call("local_list_templates", {"resourceType": "sandbox"}, client=_FakeClient(TEMPLATES))
    assert text == "Available templates for sandbox:\n\nNo templates found for sandbox."


def test_list_templates_needs_client():
    is_error, text = _call("local_list_templates", {"resourceType": "all"})
    assert is_error
    assert text == "SDK client not initialized"


# --- create ---


def test_create_refuses_existing_directory_without_running_cli(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "taken").mkdir()
    with patch("blaxel_mcp_server.local.subprocess.run") as run:
        is_error, text = _call("local_create_agent", {"directory": "taken"})
    assert is_error
    assert text == "directory 'taken' already exists"
    run.assert_not_called()


def test_create_dot_directory_always_exists():
    with patch("blaxel_mcp_server.local.subprocess.run") as run:
        is_error, text = _call("local_create_sandbox", {"directory": "."})
    assert is_error
    assert text == "directory '.' already exists"
    run.assert_not_called()


def test_create_success_message(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with patch(
        "blaxel_mcp_server.local.subprocess.run", return_value=_completed(0, "scaffolded")
    ) as run:
        is_error, text = _call(
            "local_create_mcp_server",
            {"directory": "tools-srv"},
            config=Config(cli_path="/opt/bl", workspace="acme"),
        )
    assert not is_error
    assert text == "Successfully created MCP server in directory: tools-srv\n\nscaffolded"
    assert run.call_args[0][0] == [
        "/opt/bl", "create-function", "tools-srv", "-y", "--workspace", "acme",
    ]


def test_create_cli_failure_is_raw_output(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with patch("blaxel_mcp_server.local.subprocess.run", return_value=_completed(1, "Error: auth")):
        is_error, text = _call("local_create_job", {"directory": "j"})
    assert is_error
    assert text == "Error: auth"


# --- deploy ---


def test_deploy_missing_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with patch("blaxel_mcp_server.local.subprocess.run") as run:
        is_error, text = _call("local_deploy_directory", {"directory": "nope"})
    assert is_error
    assert text == "directory 'nope' does not exist"
    run.assert_not_called()


def test_deploy_requires_project_descriptor(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "app").mkdir()
    with patch("blaxel_mcp_server.local.subprocess.run") as run:
        is_error, text = _call("local_deploy_directory", {"directory": "app"})
    assert is_error
    assert text == (
        "directory 'app' does not appear to be a valid Blaxel project (missing blaxel.yaml)"
    )
    run.assert_not_called()


def test_deploy_dry_run(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / "blaxel.yml").write_text("name: app\n")
    with patch("blaxel_mcp_server.local.subprocess.run", return_value=_completed(0, "ok")) as run:
        is_error, text = _call("local_deploy_directory", {"directory": "app", "dryRun": True})
    assert not is_error
    assert text == "Dry run completed successfully from directory: app\n\nok"
    assert run.call_args[0][0] == ["bl", "deploy", "--directory", "app", "--dryrun"]


def test_deploy_current_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "blaxel.yaml").write_text("name: here\n")
    with patch("blaxel_mcp_server.local.subprocess.run", return_value=_completed(0, "live")):
        _, text = _call("local_deploy_directory", {})
    assert text.startswith("Successfully deployed from directory: ")
    assert text.endswith("\n\nlive")


# --- run ---


def test_run_deployed_resource():
    with patch("blaxel_mcp_server.local.subprocess.run", return_value=_completed(0, "hello")) as run:
        _, text = _call(
            "local_run_deployed_resource",
            {"resourceType": "agent", "resourceName": "bot"},
            config=Config(workspace="acme"),
        )
    assert text == "Successfully ran agent 'bot':\n\nhello"
    assert run.call_args[0][0] == ["bl", "run", "agent", "bot", "--workspace", "acme"]


def test_read_only_keeps_only_guides_and_templates():
    registry = ToolRegistry()
    local.register_tools(registry, Config(read_only=True))
    assert sorted(registry.names()) == ["local_list_templates", "local_quick_start_guide"]


def test_running_cli_does_not_block_other_tools():
    guide_done = threading.Event()

    def slow_cli(cmd, **kwargs):
        finished = guide_done.wait(timeout=5)
        return _completed(0, "ran" if finished else "blocked the guide")

    registry = ToolRegistry()
    local.register_tools(registry, Config())
    ctx = ToolContext(config=Config())

    async def guide_then_signal():
        await asyncio.sleep(0.05)
        result = await registry.dispatch("local_quick_start_guide", {"resourceType": "job"}, ctx)
        guide_done.set()
        return result

    async def both():
        return await asyncio.gather(
            registry.dispatch(
                "local_run_deployed_resource", {"resourceType": "job", "resourceName": "etl"}, ctx
            ),
            guide_then_signal(),
        )

    with patch("blaxel_mcp_server.local.subprocess.run", side_effect=slow_cli):
        run_result, guide_result = _run(both())

    assert guide_result.content[0].text == local.GUIDES["job"]
    assert run_result.content[0].text == "Successfully ran job 'etl':\n\nran"
