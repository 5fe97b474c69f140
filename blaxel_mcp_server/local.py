"""Project scaffolding and deployment through the ``bl`` CLI.

Each mutating tool runs one blocking ``bl`` command and captures stdout and
stderr together. A non-zero exit is reported with the captured output as the
error text. There is no timeout and no retry.
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Any, Dict, List, Sequence

from blaxel_mcp_server.config import Config
from blaxel_mcp_server.errors import ExternalProcessError, ToolError, ToolValidationError
from blaxel_mcp_server.tooling import (
    ToolContext,
    ToolDescriptor,
    ToolRegistry,
    as_list,
    object_schema,
    optional_str,
    require_client,
    require_str,
    status_error,
)

logger = logging.getLogger(__name__)

PROJECT_DESCRIPTORS = ("blaxel.yaml", "blaxel.yml")

_INSTALL_HINT = "npm install -g @blaxel/cli"

GUIDES: Dict[str, str] = {
    "agent": """Quick Start Guide for Agents:

1. Install Blaxel CLI:
   npm install -g @blaxel/cli

2. Create a new agent project:
   bl create-agent-app my-agent -y

3. Navigate to the project:
   cd my-agent

4. Deploy the agent:
   bl deploy

Available templates:
- template-google-adk-py: Google ADK Python template
- template-langgraph-py: LangGraph Python template
- template-pydantic-py: Pydantic Python template
- template-crewai-py: CrewAI Python template
- template-mastra-ts: Mastra TypeScript template
- template-controlflow-py: ControlFlow Python template""",
    "job": """Quick Start Guide for Jobs:

1. Install Blaxel CLI:
   npm install -g @blaxel/cli

2. Create a new job project:
   bl create-job my-job -y

3. Navigate to the project:
   cd my-job

4. Deploy the job:
   bl deploy

Job templates available for batch processing tasks.""",
    "mcp-server": """Quick Start Guide for MCP Servers:

1. Install Blaxel CLI:
   npm install -g @blaxel/cli

2. Create a new MCP server project:
   bl create-function my-mcp-server -y

3. Navigate to the project:
   cd my-mcp-server

4. Deploy the MCP server:
   bl deploy

MCP servers provide tool functions for AI agents.""",
    "sandbox": """Quick Start Guide for Sandboxes:

1. Install Blaxel CLI:
   npm install -g @blaxel/cli

2. Create a new sandbox project:
   bl create-sandbox my-sandbox -y

3. Navigate to the project:
   cd my-sandbox

4. Deploy the sandbox:
   bl deploy

Sandboxes provide isolated environments for running code.""",
}

TOPIC_KEYWORDS: Dict[str, Sequence[str]] = {
    "agent": ("agent", "agents", "adk", "langgraph", "pydantic", "crewai", "mastra", "controlflow"),
    "job": ("job", "jobs", "batch"),
    "sandbox": ("sandbox", "sandboxes", "vm"),
    "mcp-server": ("mcp", "mcp-server", "function", "functions", "tool", "tools"),
}

# tool name -> (bl subcommand, label used in the success message)
CREATE_COMMANDS: Dict[str, Any] = {
    "local_create_agent": ("create-agent-app", "agent app"),
    "local_create_job": ("create-job", "job"),
    "local_create_mcp_server": ("create-function", "MCP server"),
    "local_create_sandbox": ("create-sandbox", "sandbox"),
}


def run_cli(cli_path: str, argv: List[str]) -> str:
    """Run ``cli_path argv...`` and return its combined output.

    Raises ``ExternalProcessError`` on a non-zero exit.
    """
    cmd = [cli_path, *argv]
    logger.info("[CLI] %s", " ".join(cmd))
    try:
        proc = subprocess.run(
            cmd,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ToolError(
            f"'{cli_path}' executable not found; install the Blaxel CLI ({_INSTALL_HINT})"
        ) from exc
    output = proc.stdout or ""
    if proc.returncode != 0:
        logger.warning("[CLI] %s exited with %s", cli_path, proc.returncode)
        raise ExternalProcessError(output, proc.returncode)
    return output


def _workspace_flag(config: Config) -> List[str]:
    return ["--workspace", config.workspace] if config.workspace else []


def build_create_command(
    subcommand: str, directory: str, config: Config, template: str = ""
) -> List[str]:
    argv = [subcommand, directory, "-y", *_workspace_flag(config)]
    if template:
        argv += ["--template", template]
    return argv


def build_deploy_command(
    config: Config,
    directory: str = "",
    name: str = "",
    skip_build: bool = False,
    dry_run: bool = False,
) -> List[str]:
    argv = ["deploy", *_workspace_flag(config)]
    if directory:
        argv += ["--directory", directory]
    if name:
        argv += ["--name", name]
    if skip_build:
        argv.append("--skip-build")
    if dry_run:
        argv.append("--dryrun")
    return argv


def resolve_deploy_target(directory: str) -> str:
    """Validate the project directory and return the path that was checked."""
    target = os.path.normpath(os.path.join(".", directory)) if directory else os.getcwd()
    if not os.path.exists(target):
        raise ToolValidationError(f"directory '{target}' does not exist")
    if not any(os.path.exists(os.path.join(target, f)) for f in PROJECT_DESCRIPTORS):
        raise ToolValidationError(
            f"directory '{target}' does not appear to be a valid Blaxel project "
            "(missing blaxel.yaml)"
        )
    return target


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _quick_start_guide(ctx: ToolContext, args: dict) -> str:
    resource_type = optional_str(args, "resourceType") or "all"
    if resource_type == "all":
        body = "".join(f"{guide}\n\n---\n\n" for guide in GUIDES.values())
        return "Quick Start Guide for All Blaxel Resources:\n\n" + body
    guide = GUIDES.get(resource_type)
    if guide is None:
        raise ToolValidationError(f"unknown resource type: {resource_type}")
    return guide


def _format_template(template: Dict[str, Any]) -> str:
    line = f"• {template['name']}"
    if template.get("description"):
        line += f" - {template['description']}"
    stars = template.get("starCount")
    downloads = template.get("downloadCount")
    if stars is not None or downloads is not None:
        line += f" (⭐ {stars or 0}, 📥 {downloads or 0})"
    topics = template.get("topics") or []
    if topics:
        line += f"\n  Topics: {', '.join(str(t) for t in topics)}"
    return line + "\n\n"


def _template_matches(template: Dict[str, Any], keywords: Sequence[str]) -> bool:
    for topic in template.get("topics") or []:
        lowered = str(topic).lower()
        if any(keyword in lowered for keyword in keywords):
            return True
    return False


def _list_templates(ctx: ToolContext, args: dict) -> str:
    resource_type = require_str(args, "resourceType", "resourceType is required")
    client = require_client(ctx)
    resp = client.list_templates()
    if not resp.ok:
        raise status_error("list templates", resp.status_code)

    keywords = TOPIC_KEYWORDS.get(resource_type, ())
    if resource_type == "all":
        text = "All available templates:\n\n"
    else:
        text = f"Available templates for {resource_type}:\n\n"

    count = 0
    for template in as_list(resp.json200):
        if not isinstance(template, dict) or not template.get("name"):
            continue
        if resource_type != "all" and not _template_matches(template, keywords):
            continue
        count += 1
        text += _format_template(template)

    if count == 0:
        if resource_type == "all":
            text += "No templates found."
        else:
            text += f"No templates found for {resource_type}."
    elif resource_type != "all":
        text += (
            f"\nUse any of these templates when creating a new {resource_type} "
            "by specifying the template name."
        )
    return text


def _create_handler(tool_name: str):
    subcommand, label = CREATE_COMMANDS[tool_name]

    def handler(ctx: ToolContext, args: dict) -> str:
        directory = require_str(args, "directory", "directory is required")
        if os.path.exists(directory):
            raise ToolValidationError(f"directory '{directory}' already exists")
        argv = build_create_command(subcommand, directory, ctx.config, optional_str(args, "template"))
        output = run_cli(ctx.config.cli_path, argv)
        return f"Successfully created {label} in directory: {directory}\n\n{output}"

    handler.__name__ = f"_{tool_name}"
    return handler


def _deploy_directory(ctx: ToolContext, args: dict) -> str:
    directory = optional_str(args, "directory")
    target = resolve_deploy_target(directory)
    dry_run = args.get("dryRun") is True
    argv = build_deploy_command(
        ctx.config,
        directory=directory,
        name=optional_str(args, "name"),
        skip_build=args.get("skipBuild") is True,
        dry_run=dry_run,
    )
    output = run_cli(ctx.config.cli_path, argv)
    status = "Dry run completed successfully" if dry_run else "Successfully deployed"
    return f"{status} from directory: {target}\n\n{output}"


def _run_deployed_resource(ctx: ToolContext, args: dict) -> str:
    resource_type = require_str(args, "resourceType", "resourceType is required")
    resource_name = require_str(args, "resourceName", "resourceName is required")
    argv = ["run", resource_type, resource_name, *_workspace_flag(ctx.config)]
    output = run_cli(ctx.config.cli_path, argv)
    return f"Successfully ran {resource_type} '{resource_name}':\n\n{output}"


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def _create_schema(what: str) -> Dict[str, Any]:
    return object_schema(
        {
            "directory": {"type": "string", "description": f"Path to create {what} in"},
            "template": {"type": "string", "description": "Template to use"},
        },
        required=["directory"],
    )


def build_tools() -> List[ToolDescriptor]:
    return [
        ToolDescriptor(
            name="local_quick_start_guide",
            description="Get a quick start guide for creating Blaxel resources without credentials",
            input_schema=object_schema(
                {
                    "resourceType": {
                        "type": "string",
                        "enum": ["agent", "job", "mcp-server", "sandbox", "all"],
                        "default": "all",
                        "description": "Type of resource to get quick start guide for",
                    }
                }
            ),
            handler=_quick_start_guide,
        ),
        ToolDescriptor(
            name="local_list_templates",
            description="List available templates for a specific resource type",
            input_schema=object_schema(
                {
                    "resourceType": {
                        "type": "string",
                        "enum": ["agent", "job", "sandbox", "mcp-server", "all"],
                        "description": "Type of resource to list templates for",
                    }
                },
                required=["resourceType"],
            ),
            handler=_list_templates,
        ),
        ToolDescriptor(
            name="local_create_agent",
            description="Create a new Blaxel agent app project locally using CLI",
            input_schema=_create_schema("agent"),
            handler=_create_handler("local_create_agent"),
            mutating=True,
        ),
        ToolDescriptor(
            name="local_create_job",
            description="Create a new Blaxel job project locally using CLI",
            input_schema=_create_schema("job"),
            handler=_create_handler("local_create_job"),
            mutating=True,
        ),
        ToolDescriptor(
            name="local_create_mcp_server",
            description="Create a new Blaxel MCP server project locally using CLI",
            input_schema=_create_schema("MCP server"),
            handler=_create_handler("local_create_mcp_server"),
            mutating=True,
        ),
        ToolDescriptor(
            name="local_create_sandbox",
            description="Create a new Blaxel sandbox project locally using CLI",
            input_schema=_create_schema("sandbox"),
            handler=_create_handler("local_create_sandbox"),
            mutating=True,
        ),
        ToolDescriptor(
            name="local_deploy_directory",
            description=(
                "Deploy a local directory containing agent, MCP server, or job code to Blaxel"
            ),
            input_schema=object_schema(
                {
                    "directory": {"type": "string", "description": "Path to directory to deploy"},
                    "name": {"type": "string", "description": "Optional name for deployment"},
                    "skipBuild": {"type": "boolean", "description": "Skip the build step"},
                    "dryRun": {
                        "type": "boolean",
                        "description": "Perform a dry run without actually deploying",
                    },
                }
            ),
            handler=_deploy_directory,
            mutating=True,
        ),
        ToolDescriptor(
            name="local_run_deployed_resource",
            description="Run a deployed resource on Blaxel",
            input_schema=object_schema(
                {
                    "resourceType": {
                        "type": "string",
                        "enum": ["agent", "model", "job", "function"],
                    },
                    "resourceName": {"type": "string"},
                },
                required=["resourceType", "resourceName"],
            ),
            handler=_run_deployed_resource,
            mutating=True,
        ),
    ]


def register_tools(registry: ToolRegistry, config: Config) -> None:
    registry.register_all(build_tools(), read_only=config.read_only)
