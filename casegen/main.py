"""CLI entry point for casegen."""

import asyncio
import sys
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import click
import structlog

from casegen.config.settings import CasegenSettings
from casegen.engine.workflow import WorkflowEngine
from casegen.exceptions import CasegenError, ConfigurationError, ValidationError
from casegen.models.domain import TestSummary
from casegen.providers.http_service import HttpGenerationService
from casegen.utils.connection_pool import close_all_pools
from casegen.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


@click.group()
@click.option(
    "--config",
    default=None,
    type=click.Path(dir_okay=False),
    help="Path to YAML configuration file (defaults plus CASEGEN_* environment variables when omitted)",
)
@click.option("--log-level", default="WARNING", help="Logging level")
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str) -> None:
    """casegen: generate test cases for a repository with an AI service."""
    configure_logging(log_level)

    try:
        settings = CasegenSettings.from_yaml(config) if config else CasegenSettings()
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("config_error", exc_info=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Unexpected error loading configuration: {e}", err=True)
        log.error("config_error_unexpected", exc_info=True)
        sys.exit(1)

    ctx.obj = {"settings": settings}


@cli.command("list-files")
@click.argument("repository")
@click.pass_context
def list_files(ctx: click.Context, repository: str) -> None:
    """List the files of REPOSITORY (e.g. https://github.com/user/repo)."""
    settings = ctx.obj["settings"]
    _run_command(_list_files(settings, repository), "list_files")


@cli.command()
@click.argument("repository")
@click.option("--select", "selected", multiple=True, help="File to select (repeatable). Prompted for when omitted.")
@click.option("--summary-id", default=None, help="Summary to generate code for. Prompted for when omitted.")
@click.option(
    "--submit/--no-submit",
    default=None,
    help="Create a pull request with the generated test. Asks for confirmation when omitted.",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write the generated test code to this file instead of printing it",
)
@click.pass_context
def run(
    ctx: click.Context,
    repository: str,
    selected: tuple[str, ...],
    summary_id: str | None,
    submit: bool | None,
    output: str | None,
) -> None:
    """Generate a test case for REPOSITORY and optionally open a pull request.

    Steps: load the file listing, select files, generate test case
    summaries, generate code for one summary, submit it.

    Examples:
        casegen run https://github.com/user/repo --select src/app.js --summary-id 1 --submit
        casegen run https://github.com/user/repo   # fully interactive
    """
    settings = ctx.obj["settings"]
    _run_command(
        _run_workflow(settings, repository, selected, summary_id, submit, output),
        "run",
    )


def _run_command(coro: Coroutine[Any, Any, None], command: str) -> None:
    """Run an async command, turning failures into exit codes."""
    try:
        asyncio.run(coro)
    except CasegenError as e:
        click.echo(f"Error: {e}", err=True)
        log.debug(f"{command}_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)
    except click.exceptions.Abort:
        click.echo("\nAborted", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        log.error(f"{command}_unexpected", exc_info=True)
        sys.exit(1)


@asynccontextmanager
async def _engine_session(settings: CasegenSettings) -> AsyncIterator[WorkflowEngine]:
    """Engine wired to the configured HTTP service, torn down on exit."""
    service = HttpGenerationService(
        base_url=settings.service_url,
        timeout=settings.service.timeout,
        max_connections=settings.service.max_connections,
        http2=settings.service.http2,
        headers=settings.service.headers,
    )
    engine = WorkflowEngine(service, config=settings.workflow)
    try:
        async with service:
            yield engine
    finally:
        log.debug("session_finished", state=engine.snapshot().to_dict())
        await engine.aclose()
        await close_all_pools()


async def _list_files(settings: CasegenSettings, repository: str) -> None:
    async with _engine_session(settings) as engine:
        files = await engine.load_listing(repository)

    if not files:
        click.echo("No files found in the repository.", err=True)
        return
    for entry in files:
        click.echo(entry.path)


async def _run_workflow(
    settings: CasegenSettings,
    repository: str,
    selected: tuple[str, ...],
    summary_id: str | None,
    submit: bool | None,
    output: str | None,
) -> None:
    """Drive one full generation session."""
    async with _engine_session(settings) as engine:
        files = await engine.load_listing(repository)
        if not files:
            click.echo("No files found in the repository.")
            return

        if selected:
            for path in selected:
                engine.toggle_selection(path)
        else:
            for path in _prompt_selection([entry.path for entry in files]):
                engine.toggle_selection(path)

        preview = await engine.wait_for_preview()
        if preview is not None:
            size = sum(len(item.content) for item in preview)
            click.echo(f"Loaded {len(preview)} selected file(s), {size} characters.")

        click.echo("Generating test case summaries...")
        summaries = await engine.generate_summaries()
        if not summaries:
            click.echo("The service returned no test case summaries.")
            return

        click.echo("\nTest Case Summaries:")
        for summary in summaries:
            click.echo(f"  [{summary.id}] {summary.summary}")

        if summary_id is None:
            summary_id = click.prompt(
                "\nSummary to generate code for",
                type=click.Choice([str(s.id) for s in summaries]),
                show_choices=False,
            )
        chosen = _find_summary(summaries, summary_id)

        click.echo("Generating test case code...")
        generated = await engine.generate_code(chosen.id if chosen else summary_id)
        if generated is None:
            raise ValidationError(f"No test case summary with id {summary_id}")

        if output:
            Path(output).write_text(generated.code)
            click.echo(f"Generated test case code written to {output}")
        else:
            click.echo("\nGenerated Test Case Code:\n")
            click.echo(generated.code)

        if submit is None:
            submit = click.confirm("\nCreate a pull request with this test?", default=False)
        if not submit:
            return

        result = await engine.submit_change()
        click.echo(f"Pull Request created successfully! URL: {result.url}")


def _prompt_selection(paths: list[str]) -> list[str]:
    """Let the user toggle files by number until they confirm a selection.

    Prompts block the event loop, so nothing is handed to the engine until
    the user confirms. The preview for the confirmed selection then runs
    while the CLI waits for it.

    Returns:
        Confirmed paths in the order they were picked.
    """
    chosen: dict[str, None] = {}

    while True:
        click.echo("\nFiles:")
        for index, path in enumerate(paths, start=1):
            mark = "x" if path in chosen else " "
            click.echo(f"  [{mark}] {index}. {path}")

        answer = click.prompt(
            "Numbers to toggle (blank to continue)",
            default="",
            show_default=False,
        )
        if not answer.strip():
            if chosen:
                return list(chosen)
            click.echo("Please select at least one file to generate summaries.")
            continue

        for token in answer.replace(",", " ").split():
            if not token.isdigit() or not 1 <= int(token) <= len(paths):
                click.echo(f"Ignoring invalid file number: {token}")
                continue
            path = paths[int(token) - 1]
            if path in chosen:
                del chosen[path]
            else:
                chosen[path] = None


def _find_summary(summaries: list[TestSummary], summary_id: str) -> TestSummary | None:
    """Match a user-typed id against a batch whose ids may be ints or strings."""
    return next((s for s in summaries if str(s.id) == summary_id), None)


if __name__ == "__main__":
    cli()
