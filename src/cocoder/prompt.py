"""Code prompt generation from workspace files."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from cocoder.errors import ConfigurationError
from cocoder.protocol import Footer, Header, Outcome, encode_content, encode_footer, encode_header
from cocoder.tokens import TokenCounter
from cocoder.workspace import FileCollection, collect_files

NO_FILES = "No files"
NO_PROJECT_INFORMATION = "No specific project information"
NO_EXAMPLE = "Do a best effort to generate code based on the structure and examples present in workspace files"


@dataclass(frozen=True)
class WorkspaceFiles:
    """Which workspace files to collect and within which limits."""

    base_dir: Path
    file_patterns: list[str]
    ignore_patterns: list[str] = field(default_factory=list)
    use_ignore_files: bool = False
    max_file_size: int | None = None
    max_tokens: int | None = None


@dataclass(frozen=True)
class CodePrompt:
    code_prompt: str
    full_file_contents: FileCollection | None = None
    preview_file_contents: FileCollection | None = None


def generate_code_prompt(
    task: str,
    *,
    full_contents: WorkspaceFiles | None = None,
    preview_contents: WorkspaceFiles | None = None,
    project_information: str | None = None,
    example: str | None = None,
    token_counter: TokenCounter | None = None,
) -> CodePrompt:
    """Build the instruction prompt for a task over workspace files."""
    if not task or not task.strip():
        raise ConfigurationError("task should be non empty")

    full = _collect(full_contents, token_counter)
    preview = _collect(preview_contents, token_counter)

    code_prompt = PROMPT_TEMPLATE.format(
        task=task.strip(),
        project_information=_or_default(project_information, NO_PROJECT_INFORMATION),
        full_files=_or_default(full.prompt if full else None, NO_FILES),
        preview_files=_or_default(preview.prompt if preview else None, NO_FILES),
        example=_or_default(example, NO_EXAMPLE),
        output_format=response_format_instructions(),
    )
    return CodePrompt(code_prompt=code_prompt, full_file_contents=full, preview_file_contents=preview)


def response_format_instructions() -> str:
    """Describe the response protocol with one example per outcome."""
    generated = "\n".join([
        encode_header(Header(outcome=Outcome.FILES_GENERATED, count=1)),
        encode_content("src/example.txt", "example file contents", relevance=10, motivation="why it was generated"),
        encode_footer(Footer(has_more_to_generate=False)),
    ])
    requested = "\n".join([
        encode_header(Header(outcome=Outcome.FILES_REQUESTED, count=1)),
        encode_content("src/needed.txt", "", relevance=8, motivation="why it is needed"),
        encode_footer(Footer(has_more_to_generate=False)),
    ])
    return RESPONSE_FORMAT_TEMPLATE.format(generated=generated, requested=requested)


def _collect(files: WorkspaceFiles | None, token_counter: TokenCounter | None) -> FileCollection | None:
    if files is None or not files.file_patterns:
        return None
    return collect_files(
        files.base_dir,
        files.file_patterns,
        ignore_patterns=files.ignore_patterns,
        use_ignore_files=files.use_ignore_files,
        max_file_size=files.max_file_size,
        max_tokens=files.max_tokens,
        token_counter=token_counter,
    )


def _or_default(value: str | None, default: str) -> str:
    if value is None or not value.strip():
        return default
    return value


RESPONSE_FORMAT_TEMPLATE = """\
* Every response must follow this format, with one CONTENT block per file:
  - start with the line HEADER (outcome="<outcome>"; count=<number of CONTENT blocks>)
  - <outcome> is one of "files-generated", "files-requested" or "notes-generated"
  - each block starts with CONTENT_START (filename="<relative path>"; relevance=<1-10>; motivation="<short text>")
  - the raw file contents follow on the next lines, without markdown fences
  - each block ends with CONTENT_END (size=<contents size in bytes>; checksum="<md5 hex digest of the contents>")
  - end with the line FOOTER (hasMoreToGenerate=<true|false>)
* Use hasMoreToGenerate=true when more files still have to be generated; you will be asked to continue
* When requesting files, leave the contents of each block empty
* Use "notes-generated" to answer with text that is not a file

Example with generated files:

{generated}

Example requesting files:

{requested}
"""

PROMPT_TEMPLATE = """\
## Instructions

### Task

{task}

### Approach

1. Analyse the request. Don't generate any codes until you have all the files you need.
2. If the contents of other workspace files would improve the solution, request them ordered by relevance \
(most relevant first). Only request files you didn't receive yet, at most 20.
3. After receiving the files, generate the complete files for the task.

## Context

### General instructions

* Act as a senior developer that is very good at design, maintaining project structures and communicating decisions \
via comments
* Be precise and tell when you don't know how to do something
* Don't ask questions if there are options that can be followed by default

### Coding instructions

* Understand the structure of the workspace and its technological stack before generating code
* Follow the conventions of the workspace files and look for additional instructions in markup files and code docs
* Deliver complete files that can replace existing workspace files as is
* Generated files must fit in the workspace structure, with filenames relative to the workspace root

### Project information

{project_information}

## Input Data

* Workspace files follow the pattern "File <relative path>: ```<contents>```"

### Full content files

{full_files}

### File previews

{preview_files}

### Example

{example}

## Output Indicator

{output_format}"""
