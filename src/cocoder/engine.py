"""Orchestration of prompt/response rounds over one completion session."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from cocoder.costs import CostTable, estimate_cost
from cocoder.errors import EmptyFileContentError, ProtocolError, UnexpectedOutcomeError, UnsafeOutputPathError
from cocoder.protocol import Header, Outcome, PromptResponse, make_content, parse_prompt_response
from cocoder.session import CompletionSession, SessionStats
from cocoder.tokens import TokenCounter
from cocoder.workspace import collect_files

GENERATE_MORE_PROMPT = "generate additional files or source codes. update already generated files if needed."
NO_ADDITIONAL_FILES_PROMPT = "Proceed without additional files"
UNPARSABLE_NOTE_PREFIX = "Model response: "


@dataclass(frozen=True)
class RequestedFilesLimits:
    """Limits applied when serving files requested by the model."""

    max_requested_files: int = 10
    max_request_rounds: int = 3
    max_file_size: int | None = None
    max_tokens: int | None = None
    ignore_patterns: list[str] = field(default_factory=list)
    use_ignore_files: bool = False


@dataclass
class RunResult:
    """Accumulated outcome of one task."""

    generated_files: list[Path] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    stats: SessionStats = field(default_factory=SessionStats)
    requested_files_served: int = 0
    request_rounds: int = 0


def decode_response(text: str) -> PromptResponse:
    """Decode model output, degrading unparsable text into a single note."""
    try:
        return parse_prompt_response(text)
    except ProtocolError as exc:
        logger.debug("engine.response.unparsable error={} position={}", exc, exc.position)
        note = make_content("notes.txt", f"{UNPARSABLE_NOTE_PREFIX}{text}", relevance=10, motivation="content body")
        return PromptResponse(header=Header(outcome=Outcome.NOTES_GENERATED, count=1), contents=[note])


class WorkspacePromptProcessor:
    """Sends prompts and acts on each decoded outcome until a terminal one.

    Generated files are written under output_dir; requested files are served
    from requested_files_dir. Files written before a failure are kept.
    """

    def __init__(
        self,
        session: CompletionSession,
        *,
        output_dir: Path,
        requested_files_dir: Path,
        limits: RequestedFilesLimits | None = None,
        model: str | None = None,
        cost_table: CostTable | None = None,
        token_counter: TokenCounter | None = None,
    ) -> None:
        self._session = session
        self._output_dir = Path(output_dir).absolute()
        self._requested_files_dir = Path(requested_files_dir).absolute()
        self._limits = limits or RequestedFilesLimits()
        self._model = model
        self._cost_table = cost_table
        self._token_counter = token_counter

    def process(self, prompt: str, result: RunResult | None = None) -> RunResult:
        result = result if result is not None else RunResult()
        next_prompt: str | None = prompt
        while next_prompt is not None:
            next_prompt = self._run_round(next_prompt, result)
        self._finish(result)
        return result

    def _run_round(self, prompt: str, result: RunResult) -> str | None:
        logger.info("engine.prompt.send")
        logger.trace("engine.prompt.text\n{}", prompt)
        reply = self._session.send_prompt(prompt)
        logger.trace("engine.response.text\n{}", reply.response)
        logger.info(
            "engine.model.invoked input_tokens={} output_tokens={}",
            reply.session_input_tokens,
            reply.session_output_tokens,
        )

        response = decode_response(reply.response)
        outcome = response.header.outcome
        if outcome == Outcome.FILES_GENERATED:
            return self._write_files(response, result)
        if outcome == Outcome.FILES_REQUESTED:
            return self._serve_requested_files(response, result)
        if outcome == Outcome.NOTES_GENERATED:
            result.notes.extend(content.body for content in response.contents)
            return None
        raise UnexpectedOutcomeError(f"Unexpected outcome: {outcome}")

    def _write_files(self, response: PromptResponse, result: RunResult) -> str | None:
        logger.info("engine.files.generated count={}", len(response.contents))
        for content in response.contents:
            if not content.body:
                raise EmptyFileContentError(f"File content should not be empty: {content.filename}")
            target = self._output_path(content.filename)
            if not content.checksum_ok:
                logger.warning("engine.file.checksum_mismatch filename={}", content.filename)
            logger.info("engine.file.write path={}", target)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content.body, encoding="utf-8")
            result.generated_files.append(target)

        if response.footer.has_more_to_generate:
            logger.info("engine.files.more_requested")
            return GENERATE_MORE_PROMPT
        return None

    def _serve_requested_files(self, response: PromptResponse, result: RunResult) -> str:
        logger.info("engine.files.requested count={}", len(response.contents))
        for content in response.contents:
            logger.debug("  {} ({}) {}", content.filename, content.relevance, content.motivation)

        if result.request_rounds >= self._limits.max_request_rounds:
            logger.info("engine.files.request_rounds_exhausted rounds={}", result.request_rounds)
            return NO_ADDITIONAL_FILES_PROMPT
        result.request_rounds += 1

        remaining = max(self._limits.max_requested_files - result.requested_files_served, 0)
        collection = collect_files(
            self._requested_files_dir,
            [content.filename for content in response.contents],
            ignore_patterns=self._limits.ignore_patterns,
            use_ignore_files=self._limits.use_ignore_files,
            max_file_size=self._limits.max_file_size,
            max_tokens=self._limits.max_tokens,
            max_files=remaining,
            token_counter=self._token_counter,
        )
        result.requested_files_served += len(collection.processed)

        logger.info("engine.files.provided count={}", len(collection.processed))
        for content in response.contents:
            if content.filename not in collection.processed:
                logger.debug("  !{}", content.filename)

        return collection.prompt or NO_ADDITIONAL_FILES_PROMPT

    def _output_path(self, filename: str) -> Path:
        target = Path(os.path.normpath(self._output_dir / filename))
        if not target.is_relative_to(self._output_dir) or target == self._output_dir:
            raise UnsafeOutputPathError(f"Generated file is outside the output directory: {filename}")
        return target

    def _finish(self, result: RunResult) -> None:
        stats = self._session.stats()
        result.stats = stats
        logger.info("engine.completed")
        logger.debug(
            "engine.stats prompts={} tokens={} input_tokens={} output_tokens={}",
            stats.prompt_counter,
            stats.total_tokens,
            stats.session_input_tokens,
            stats.session_output_tokens,
        )
        if self._cost_table is None:
            return
        cost = estimate_cost(self._model, stats.session_input_tokens, stats.session_output_tokens, self._cost_table)
        if cost is not None:
            logger.info("engine.cost.estimated model={} usd={}", self._model, cost)
