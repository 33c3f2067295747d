"""Text protocol for structured model responses.

A response is made of one header line, any number of content blocks and one
footer line::

    HEADER (outcome="files-generated"; count=1)
    CONTENT_START (filename="src/app.py"; relevance=10; motivation="entrypoint")
    print("hello")
    CONTENT_END (size=14; checksum="<md5 of the body>")
    FOOTER (hasMoreToGenerate=false)

Header, contents and footer are located independently over the whole text.
Content blocks are found by scanning forward from one start marker to the
next end marker.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from enum import StrEnum

from loguru import logger

from cocoder.errors import ProtocolError

HEADER_RE = re.compile(r'HEADER\s*\(outcome="(?P<outcome>[^"\n]+)";\s*count=(?P<count>\d+)\)')
FOOTER_RE = re.compile(r"FOOTER\s*\(hasMoreToGenerate=(?P<value>[A-Za-z]+)\)")
CONTENT_START_RE = re.compile(
    r'CONTENT_START\s*\(filename="(?P<filename>[^"\n]*)";\s*relevance=(?P<relevance>\d+);'
    r'\s*motivation="(?P<motivation>[^\n]*?)"\)'
)
CONTENT_END_RE = re.compile(r'CONTENT_END\s*\(size=(?P<size>\d+);\s*checksum="(?P<checksum>[0-9A-Fa-f]*)"\)')
_LEADING_RE = re.compile(r"\A[ \t]*\r?\n?")
_FENCE_RE = re.compile(r"\A```[^\n`]*\n(?P<body>.*?)\n?```\Z", re.DOTALL)


class Outcome(StrEnum):
    FILES_GENERATED = "files-generated"
    FILES_REQUESTED = "files-requested"
    NOTES_GENERATED = "notes-generated"


@dataclass(frozen=True)
class Header:
    outcome: str
    count: int


@dataclass(frozen=True)
class Footer:
    has_more_to_generate: bool


@dataclass(frozen=True)
class Content:
    """One decoded content block."""

    filename: str
    relevance: int
    motivation: str
    body: str
    size: int
    checksum: str
    checksum_ok: bool


@dataclass(frozen=True)
class PromptResponse:
    header: Header
    contents: list[Content] = field(default_factory=list)
    footer: Footer = field(default_factory=lambda: Footer(has_more_to_generate=False))


def checksum(body: str) -> str:
    """Return the md5 hex digest of the UTF-8 encoded body."""
    return hashlib.md5(body.encode("utf-8")).hexdigest()  # noqa: S324


def make_content(filename: str, body: str, *, relevance: int = 10, motivation: str = "") -> Content:
    """Build a content block whose size and checksum are computed from body."""
    digest = checksum(body)
    return Content(
        filename=filename,
        relevance=relevance,
        motivation=motivation,
        body=body,
        size=len(body.encode("utf-8")),
        checksum=digest,
        checksum_ok=True,
    )


def parse_header(text: str) -> Header:
    match = HEADER_RE.search(text)
    if match is None:
        raise ProtocolError("Header not found")
    return Header(outcome=match.group("outcome"), count=int(match.group("count")))


def parse_footer(text: str) -> Footer:
    match = FOOTER_RE.search(text)
    if match is None:
        raise ProtocolError("Footer not found")
    return Footer(has_more_to_generate=match.group("value").lower() == "true")


def parse_contents(text: str) -> list[Content]:
    """Decode every terminated content block in document order.

    A block whose checksum does not match its body is kept and flagged with
    ``checksum_ok=False``.
    """
    contents: list[Content] = []
    position = 0
    while True:
        start = CONTENT_START_RE.search(text, position)
        if start is None:
            break
        end = CONTENT_END_RE.search(text, start.end())
        if end is None:
            logger.debug("protocol.content.unterminated position={}", start.start())
            position = start.start()
            break
        restart = CONTENT_START_RE.search(text, start.end(), end.start())
        if restart is not None:
            logger.debug("protocol.content.unterminated position={}", start.start())
            position = restart.start()
            continue

        declared = end.group("checksum").lower()
        body, verified = _extract_body(text[start.end() : end.start()], declared)
        contents.append(
            Content(
                filename=start.group("filename"),
                relevance=int(start.group("relevance")),
                motivation=start.group("motivation"),
                body=body,
                size=int(end.group("size")),
                checksum=declared,
                checksum_ok=verified,
            )
        )
        position = end.end()

    if not contents:
        raise ProtocolError("Contents not found", position=position)
    return contents


def parse_prompt_response(text: str) -> PromptResponse:
    return PromptResponse(
        header=parse_header(text),
        contents=parse_contents(text),
        footer=parse_footer(text),
    )


def encode_header(header: Header) -> str:
    return f'HEADER (outcome="{header.outcome}"; count={header.count})'


def encode_footer(footer: Footer) -> str:
    return f"FOOTER (hasMoreToGenerate={'true' if footer.has_more_to_generate else 'false'})"


def encode_content(filename: str, body: str, *, relevance: int = 10, motivation: str = "") -> str:
    start = f'CONTENT_START (filename="{filename}"; relevance={relevance}; motivation="{motivation}")'
    end = f'CONTENT_END (size={len(body.encode("utf-8"))}; checksum="{checksum(body)}")'
    if not body:
        return f"{start}\n{end}"
    return f"{start}\n{body}\n{end}"


def encode_prompt_response(response: PromptResponse) -> str:
    lines = [encode_header(response.header)]
    lines.extend(
        encode_content(item.filename, item.body, relevance=item.relevance, motivation=item.motivation)
        for item in response.contents
    )
    lines.append(encode_footer(response.footer))
    return "\n".join(lines)


def _extract_body(raw: str, declared: str) -> tuple[str, bool]:
    """Strip the marker line breaks and verify the body against its checksum.

    A trailing carriage return or a markdown fence around the body is only
    dropped when the stripped text is the one matching the declared checksum.
    """
    body = _LEADING_RE.sub("", raw, count=1).removesuffix("\n")
    candidates = [body, body.removesuffix("\r")]
    fenced = _FENCE_RE.match(candidates[-1])
    if fenced is not None:
        candidates.append(fenced.group("body"))
    for candidate in candidates:
        if checksum(candidate) == declared:
            return candidate, True
    return body, False
