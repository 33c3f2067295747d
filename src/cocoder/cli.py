"""Command line interface for cocoder."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import typer
from loguru import logger
from pydantic import ValidationError

from cocoder.config import Settings, load_settings
from cocoder.engine import RequestedFilesLimits, RunResult
from cocoder.errors import CocoderError, ConfigurationError
from cocoder.integrations import OpenAIChatProvider, build_client
from cocoder.logging_utils import configure_logging
from cocoder.prompt import WorkspaceFiles
from cocoder.runner import WorkspacePromptRunnerArgs, run_workspace_prompt
from cocoder.session import SessionOptions
from cocoder.tokens import token_counter_for

EXIT_CONFIGURATION_ERROR = 1
EXIT_UNCAUGHT_ERROR = 3

app = typer.Typer(name="cocoder", help="Generate workspace code with a language model.", add_completion=False)


@app.callback()
def main() -> None:
    """Cocoder command line."""


@app.command()
def run(
    task: str = typer.Option(..., "--task", "-t", help="Task to perform"),
    base_dir: Path = typer.Option(Path("."), "--base-dir", "-b", help="Workspace root"),  # noqa: B008
    files: list[str] | None = typer.Option(None, "--files", "-f", help="Glob patterns of full content files"),  # noqa: B008
    files_ignore: list[str] | None = typer.Option(  # noqa: B008
        None, "--files-ignore", help="Glob patterns of files to ignore, node_modules by default"
    ),
    preview: list[str] | None = typer.Option(None, "--preview", "-p", help="Glob patterns of preview files"),  # noqa: B008
    preview_size: int | None = typer.Option(None, "--preview-size", help="Max characters of each preview file"),
    use_gitignore: bool = typer.Option(False, "--use-gitignore", help="Ignore files listed in .gitignore files"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model or Azure deployment name"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output directory"),  # noqa: B008
    conversation_file: Path | None = typer.Option(  # noqa: B008
        None, "--conversation-file", help="Conversation JSON file, relative to the output directory"
    ),
    conversation_save: bool = typer.Option(
        True, "--conversation-save/--no-conversation-save", help="Save the conversation file after the run"
    ),
    max_tokens_total: int | None = typer.Option(None, "--max-tokens-total", help="Max tokens per task"),
    max_tokens_per_request: int | None = typer.Option(None, "--max-tokens-per-request", help="Max tokens per request"),
    max_tokens_files: int | None = typer.Option(None, "--max-tokens-files", help="Max tokens of workspace files"),
    max_file_size: int | None = typer.Option(None, "--max-file-size", help="Max characters of each file"),
    max_file_requests: int | None = typer.Option(None, "--max-file-requests", help="Max files served on request"),
    max_prompts: int | None = typer.Option(None, "--max-prompts", help="Max prompts per task"),
    api_provider: str | None = typer.Option(None, "--api-provider", help="openai or azure"),
    api_url: str | None = typer.Option(None, "--api-url", help="API base URL"),
    api_auth: str | None = typer.Option(None, "--api-auth", help="apikey or token"),
    api_key: str | None = typer.Option(None, "--api-key", help="API key or bearer token"),
    api_azure_version: str | None = typer.Option(None, "--api-azure-version", help="Azure API version"),
    log: str | None = typer.Option(None, "--log", help="Log level: off, info, debug or trace"),
    example: str | None = typer.Option(None, "--example", "-e", help="Example of the expected result"),
    info: str | None = typer.Option(None, "--info", "-i", help="Project information"),
) -> None:
    """Run one task over the workspace files and write the generated files."""

    workspace = base_dir.absolute()
    try:
        settings = load_settings(
            workspace,
            model=model,
            output=output,
            max_tokens_total=max_tokens_total,
            max_tokens_per_request=max_tokens_per_request,
            max_tokens_files=max_tokens_files,
            max_file_size=max_file_size,
            max_file_requests=max_file_requests,
            max_prompts=max_prompts,
            preview_size=preview_size,
            api_provider=api_provider,
            api_url=api_url,
            api_auth=api_auth,
            api_key=api_key,
            api_azure_version=api_azure_version,
            log_level=log,
        )
        configure_logging(settings.log_level, profile="console")
        provider = OpenAIChatProvider(build_client(settings.provider_config()), settings.completion_model())
        args = _runner_args(
            settings,
            task=task,
            workspace=workspace,
            files=split_patterns(files),
            preview=split_patterns(preview),
            ignore=split_patterns(files_ignore) if files_ignore else settings.files_ignore,
            use_gitignore=use_gitignore,
            conversation_file=conversation_file,
            conversation_save=conversation_save,
            example=example,
            info=info,
        )
        result = run_workspace_prompt(args, provider)
    except (ConfigurationError, ValidationError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(EXIT_CONFIGURATION_ERROR) from exc
    except CocoderError as exc:
        logger.debug("cli.run.failed error={!r}", exc)
        typer.echo(_first_line(exc), err=True)
        raise typer.Exit(EXIT_UNCAUGHT_ERROR) from exc

    _print_result(result)


def split_patterns(values: Iterable[str] | None) -> list[str]:
    """Split comma separated patterns, keeping commas inside braces."""
    patterns: list[str] = []
    for value in values or []:
        depth = 0
        current: list[str] = []
        for char in value:
            if char == "{":
                depth += 1
            elif char == "}" and depth > 0:
                depth -= 1
            if char == "," and depth == 0:
                patterns.append("".join(current))
                current = []
                continue
            current.append(char)
        patterns.append("".join(current))
    return [pattern.strip() for pattern in patterns if pattern.strip()]


def _runner_args(
    settings: Settings,
    *,
    task: str,
    workspace: Path,
    files: list[str],
    preview: list[str],
    ignore: list[str],
    use_gitignore: bool,
    conversation_file: Path | None,
    conversation_save: bool,
    example: str | None,
    info: str | None,
) -> WorkspacePromptRunnerArgs:
    full_contents = None
    if files:
        full_contents = WorkspaceFiles(
            base_dir=workspace,
            file_patterns=files,
            ignore_patterns=ignore,
            use_ignore_files=use_gitignore,
            max_file_size=settings.max_file_size,
            max_tokens=settings.max_tokens_files,
        )
    preview_contents = None
    if preview:
        preview_contents = WorkspaceFiles(
            base_dir=workspace,
            file_patterns=preview,
            ignore_patterns=ignore,
            use_ignore_files=use_gitignore,
            max_file_size=settings.preview_size,
            max_tokens=settings.max_tokens_files,
        )

    output_dir = settings.output if settings.output.is_absolute() else workspace / settings.output
    return WorkspacePromptRunnerArgs(
        task=task,
        output_dir=output_dir,
        full_contents=full_contents,
        preview_contents=preview_contents,
        project_information=info,
        example=example,
        session_options=SessionOptions(
            max_prompts=settings.max_prompts,
            max_tokens_per_request=settings.max_tokens_per_request,
            max_tokens_total=settings.max_tokens_total,
        ),
        requested_files_dir=workspace,
        requested_files_limits=RequestedFilesLimits(
            max_requested_files=settings.max_file_requests,
            max_request_rounds=settings.max_request_rounds,
            max_file_size=settings.max_file_size,
            max_tokens=settings.max_tokens_files,
            ignore_patterns=ignore,
            use_ignore_files=use_gitignore,
        ),
        conversation_file=conversation_file,
        conversation_save=conversation_save,
        model=settings.model,
        token_counter=token_counter_for(settings.model),
    )


def _print_result(result: RunResult) -> None:
    if result.generated_files:
        typer.echo(f"{len(result.generated_files)} files generated")
        for path in result.generated_files:
            typer.echo(f"  {path}")
    else:
        typer.echo("No files generated")
    for note in result.notes:
        typer.echo(note)


def _first_line(exc: Exception) -> str:
    lines = str(exc).strip().splitlines()
    return lines[0] if lines else type(exc).__name__
