"""cocoder - workspace-aware code generation with language models."""

from .engine import RequestedFilesLimits, RunResult, WorkspacePromptProcessor
from .prompt import WorkspaceFiles, generate_code_prompt
from .runner import WorkspacePromptRunnerArgs, run_workspace_prompt
from .session import CompletionSession, SessionOptions

__version__ = "0.1.0"

__all__ = [
    "CompletionSession",
    "RequestedFilesLimits",
    "RunResult",
    "SessionOptions",
    "WorkspaceFiles",
    "WorkspacePromptProcessor",
    "WorkspacePromptRunnerArgs",
    "generate_code_prompt",
    "run_workspace_prompt",
]
