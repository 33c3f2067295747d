"""Run one task over a workspace end to end."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from cocoder.costs import DEFAULT_COST_TABLE, CostTable
from cocoder.engine import RequestedFilesLimits, RunResult, WorkspacePromptProcessor
from cocoder.errors import ConfigurationError
from cocoder.prompt import WorkspaceFiles, generate_code_prompt
from cocoder.session import CompletionProvider, CompletionSession, SessionOptions
from cocoder.tokens import TokenCounter
from cocoder.workspace import FileCollection


@dataclass(frozen=True)
class WorkspacePromptRunnerArgs:
    task: str
    output_dir: Path
    full_contents: WorkspaceFiles | None = None
    preview_contents: WorkspaceFiles | None = None
    project_information: str | None = None
    example: str | None = None
    session_options: SessionOptions = field(default_factory=SessionOptions)
    requested_files_dir: Path | None = None
    requested_files_limits: RequestedFilesLimits = field(default_factory=RequestedFilesLimits)
    conversation_file: Path | None = None
    conversation_save: bool = True
    model: str | None = None
    cost_table: CostTable | None = field(default_factory=lambda: DEFAULT_COST_TABLE)
    token_counter: TokenCounter | None = None


def run_workspace_prompt(args: WorkspacePromptRunnerArgs, provider: CompletionProvider) -> RunResult:
    """Generate the code prompt, run it through a new session and persist the conversation."""
    requested_files_dir = _requested_files_dir(args)
    output_dir = Path(args.output_dir).absolute()

    code_prompt = generate_code_prompt(
        args.task,
        full_contents=args.full_contents,
        preview_contents=args.preview_contents,
        project_information=args.project_information,
        example=args.example,
        token_counter=args.token_counter,
    )
    _log_collection("full", code_prompt.full_file_contents)
    _log_collection("preview", code_prompt.preview_file_contents)

    session = CompletionSession(provider, options=args.session_options, token_counter=args.token_counter)
    conversation_file = _conversation_path(args.conversation_file, output_dir)
    if conversation_file is not None and conversation_file.exists():
        session.load_conversation(conversation_file)

    processor = WorkspacePromptProcessor(
        session,
        output_dir=output_dir,
        requested_files_dir=requested_files_dir,
        limits=args.requested_files_limits,
        model=args.model,
        cost_table=args.cost_table,
        token_counter=args.token_counter,
    )
    try:
        return processor.process(code_prompt.code_prompt)
    finally:
        if conversation_file is not None and args.conversation_save:
            session.save_conversation(conversation_file)
            logger.debug("runner.conversation.saved path={}", conversation_file)


def _requested_files_dir(args: WorkspacePromptRunnerArgs) -> Path:
    if args.requested_files_dir is not None:
        return Path(args.requested_files_dir).absolute()
    for files in (args.full_contents, args.preview_contents):
        if files is not None:
            return Path(files.base_dir).absolute()
    raise ConfigurationError("Base directory for requested files is required")


def _conversation_path(path: Path | None, output_dir: Path) -> Path | None:
    if path is None:
        return None
    return path if path.is_absolute() else output_dir / path


def _log_collection(kind: str, collection: FileCollection | None) -> None:
    if collection is None:
        return
    logger.info(
        "runner.files.{} processed={} truncated={} skipped={}",
        kind,
        len(collection.processed),
        len(collection.truncated),
        len(collection.skipped),
    )
    for path in collection.skipped:
        logger.debug("  !{}", path)
