"""agentic-exec command line interface.

Inspect and manage shell approvals, classify strings with the syntax guard
and run shell tool calls from JSON through the full gate.
"""

import json
import sys

import click
from rich.console import Console
from rich.table import Table

from agentic_exec import __version__
from agentic_exec.config import BaseSettings
from agentic_exec.hitl.policy import ApprovalKey, ApprovalPolicy, ApprovalScope
from agentic_exec.logging import Loggers, bind_context, configure_logging
from agentic_exec.persistence import NoProjectError, PersistenceError, SettingsStore
from agentic_exec.tools.registry import ToolError
from agentic_exec.tools.shell.config import ShellSecurityConfig
from agentic_exec.tools.shell.gate import create_shell_gate
from agentic_exec.tools.shell.models import CommandRequest, CommandStage
from agentic_exec.tools.shell.prefix import derive_approval_key
from agentic_exec.tools.shell.syntax_guard import scan

logger = Loggers.cli()


def _store(settings: BaseSettings) -> SettingsStore:
    return SettingsStore(settings.settings_file, project=settings.project)


def _policy(settings: BaseSettings) -> ApprovalPolicy:
    config = ShellSecurityConfig.load_default()
    return ApprovalPolicy(
        _store(settings),
        category=config.approval_category,
        extra_preapproved=config.extra_preapproved,
    )


@click.group()
@click.version_option(version=__version__, prog_name="agentic-exec")
@click.option("--project", default=None, help="Active project (enables project approvals).")
@click.option(
    "--home",
    default=None,
    type=click.Path(file_okay=False),
    help="Directory holding settings.json.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, project: str | None, home: str | None, verbose: bool):
    """Gated execution of agent-issued shell commands."""
    overrides: dict = {}
    if project:
        overrides["project"] = project
    if home:
        overrides["home_dir"] = home
    if verbose:
        overrides["log_level"] = "debug"
    settings = BaseSettings(**overrides)
    configure_logging(settings)
    if settings.project:
        bind_context(project=settings.project)
    ctx.obj = settings


@main.command()
@click.argument("texts", nargs=-1, required=True)
def check(texts: tuple[str, ...]):
    """Classify each TEXT with the syntax guard.

    Exits with status 1 when any text is dangerous.
    """
    dangerous = False
    for text in texts:
        result = scan(text)
        if result.is_safe:
            click.echo(f"safe: {text}")
        else:
            dangerous = True
            click.echo(f"{result.outcome.value}: {text} ({result.reason})")
    if dangerous:
        sys.exit(1)


@main.command(context_settings={"ignore_unknown_options": True})
@click.argument("command")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_obj
def key(settings: BaseSettings, command: str, args: tuple[str, ...]):
    """Show the approval key of COMMAND ARGS and whether it is authorized."""
    try:
        approval_key = derive_approval_key(CommandStage(command, tuple(args)))
    except ToolError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(2)

    policy = _policy(settings)
    if policy.is_preapproved(approval_key):
        status = "pre-approved"
    else:
        scope = policy.lookup(approval_key)
        status = f"approved ({scope.value})" if scope else "not approved"
    click.echo(f"{approval_key}\t{status}")


@main.group()
def approvals():
    """List and record persisted approvals."""


@approvals.command("list")
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text",
              help="Output format.")
@click.option("--preapproved", is_flag=True, help="Include the built-in baseline.")
@click.pass_obj
def list_approvals(settings: BaseSettings, fmt: str, preapproved: bool):
    """List project and global approvals."""
    policy = _policy(settings)
    rows = [record.to_dict() for record in policy.records()]
    if preapproved:
        rows += [
            {"scope": "preapproved", "key": str(k)}
            for k in sorted(policy.preapproved, key=str)
        ]

    if fmt == "json":
        click.echo(json.dumps(rows, indent=2))
        return

    if not rows:
        click.echo("No approvals recorded.")
        return
    table = Table(title="Shell approvals")
    table.add_column("Scope", style="cyan")
    table.add_column("Key")
    for row in rows:
        table.add_row(row["scope"], row["key"])
    Console().print(table)


@approvals.command("approve")
@click.argument("approval_key")
@click.option("--scope", type=click.Choice(["project", "global"]), default="project",
              help="Where to record the approval.")
@click.pass_obj
def approve(settings: BaseSettings, approval_key: str, scope: str):
    """Record APPROVAL_KEY (e.g. "npm test") at the given scope."""
    try:
        parsed = ApprovalKey.from_string(approval_key.strip())
    except ValueError as e:
        click.echo(f"Invalid key: {e}", err=True)
        sys.exit(2)

    policy = _policy(settings)
    try:
        record = policy.approve(ApprovalScope(scope), parsed)
    except NoProjectError:
        click.echo("Error: no project is active; pass --project NAME.", err=True)
        sys.exit(1)
    except PersistenceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if record.scope.value != scope:
        click.echo(f"'{parsed}' is already approved at {record.scope.value} scope.")
    else:
        click.echo(f"Approved '{parsed}' at {scope} scope.")


@main.group()
def projects():
    """Manage the project registry."""


@projects.command("register")
@click.argument("name")
@click.argument("root", default=".", type=click.Path(exists=True, file_okay=False))
@click.pass_obj
def register_project(settings: BaseSettings, name: str, root: str):
    """Register NAME with ROOT as its working directory."""
    try:
        _store(settings).register_project(name, root)
    except PersistenceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Registered project '{name}'.")


@main.command()
@click.argument("source", default="-", type=click.File("r"))
@click.pass_obj
def run(settings: BaseSettings, source):
    """Run a shell tool call read as JSON from SOURCE (default: stdin).

    Exits with the command's status, or 2 when the gate refused the call.
    """
    try:
        arguments = json.load(source)
    except json.JSONDecodeError as e:
        click.echo(f"Invalid JSON: {e}", err=True)
        sys.exit(2)

    gate = create_shell_gate(settings)
    try:
        request = CommandRequest.from_tool_args(arguments)
        result = gate.execute(request)
    except ToolError as e:
        logger.info("cli_run_refused", code=e.error_code)
        click.echo(e.message, err=True)
        sys.exit(2)

    click.echo(result.format())
    if not result.success:
        sys.exit(result.exit_code if result.exit_code > 0 else 1)
