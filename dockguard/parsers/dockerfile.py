"""Turn Dockerfile text into an ordered list of instructions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from ..errors import ParseError
from .kinds import DocumentKind

DEFAULT_ESCAPE = "\\"
DIRECTIVE_PATTERN = re.compile(r"^#\s*([a-zA-Z][a-zA-Z0-9]*)\s*=\s*(.*?)\s*$")
HEREDOC_PATTERN = re.compile(r"<<(-?)([\"']?)([A-Za-z_][A-Za-z0-9_]*)\2")
HEREDOC_BOUNDARY = " \t|;&"
STAGE_ALIAS_PATTERN = re.compile(r"\s+AS\s+(\S+)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class Instruction:
    """One logical Dockerfile directive."""

    keyword: str
    arguments: str
    line: int
    stage_index: int

    @property
    def text(self) -> str:
        return f"{self.keyword} {self.arguments}".strip()


@dataclass(frozen=True)
class DockerfileDocument:
    """Parsed Dockerfile, read-only after parse."""

    path: str
    instructions: Tuple[Instruction, ...]
    stage_count: int

    kind = DocumentKind.DOCKERFILE

    @property
    def final_stage_index(self) -> int:
        return max(self.stage_count - 1, 0)

    def stage(self, index: int) -> Tuple[Instruction, ...]:
        return tuple(inst for inst in self.instructions if inst.stage_index == index)

    def stages(self) -> List[Tuple[Instruction, ...]]:
        return [self.stage(index) for index in range(self.stage_count)]

    def final_stage(self) -> Tuple[Instruction, ...]:
        return self.stage(self.final_stage_index)

    def stage_from(self, index: int) -> Optional[Instruction]:
        """Return the FROM instruction opening stage ``index``."""

        for inst in self.stage(index):
            if inst.keyword == "FROM":
                return inst
        return None

    @property
    def stage_names(self) -> Dict[str, int]:
        names: Dict[str, int] = {}
        for inst in self.instructions:
            if inst.keyword != "FROM":
                continue
            match = STAGE_ALIAS_PATTERN.search(inst.arguments)
            if match:
                names[match.group(1).lower()] = inst.stage_index
        return names


def parse(text: str, path: str = "Dockerfile") -> DockerfileDocument:
    """Parse Dockerfile ``text`` into a :class:`DockerfileDocument`.

    Unknown instructions are kept verbatim. Only a dangling line continuation
    or an unterminated heredoc raises :class:`ParseError`.
    """

    lines = text.splitlines()
    escape = _read_escape_directive(lines)
    instructions: List[Instruction] = []
    stage = -1
    index = 0
    total = len(lines)

    while index < total:
        stripped = lines[index].strip()
        if not stripped or stripped.startswith("#"):
            index += 1
            continue

        start_line = index + 1
        logical, index = _join_continuations(lines, index, escape, start_line)
        if not logical:
            continue

        parts = logical.split(None, 1)
        keyword = parts[0].upper()
        arguments = parts[1].strip() if len(parts) > 1 else ""

        delimiters = _heredoc_delimiters(arguments)
        if delimiters:
            bodies, index = _read_heredocs(lines, index, delimiters, start_line)
            arguments = "\n".join([arguments] + bodies)

        if keyword == "FROM":
            stage += 1
        instructions.append(
            Instruction(
                keyword=keyword,
                arguments=arguments,
                line=start_line,
                stage_index=max(stage, 0),
            )
        )

    stage_count = stage + 1
    if stage_count == 0 and instructions:
        stage_count = 1
    return DockerfileDocument(path=path, instructions=tuple(instructions), stage_count=stage_count)


# ----------------------------------------------------------------------
# Tokenizing helpers
# ----------------------------------------------------------------------
def _read_escape_directive(lines: Sequence[str]) -> str:
    for line in lines:
        match = DIRECTIVE_PATTERN.match(line.strip())
        if not match:
            break
        if match.group(1).lower() == "escape" and match.group(2) in ("\\", "`"):
            return match.group(2)
    return DEFAULT_ESCAPE


def _join_continuations(lines: Sequence[str], index: int, escape: str, start_line: int) -> Tuple[str, int]:
    """Join a continuation group starting at ``index``; return it and the next index.

    Trailing comments are dropped from each physical line before joining.
    """

    current = lines[index].rstrip()
    index += 1
    fragments: List[str] = []
    while current.endswith(escape):
        fragments.append(_strip_trailing_comment(current[:-1]))
        current = None
        while index < len(lines):
            candidate = lines[index].strip()
            index += 1
            if candidate and not candidate.startswith("#"):
                current = lines[index - 1].rstrip()
                break
        if current is None:
            raise ParseError("line continuation at end of file", line=start_line)
    fragments.append(_strip_trailing_comment(current))
    return " ".join(fragment for fragment in fragments if fragment), index


def _unquoted(line: str) -> Iterator[Tuple[int, str, str]]:
    """Yield ``(position, char, previous_char)`` for characters outside quotes."""

    quote: Optional[str] = None
    previous = " "
    for position, char in enumerate(line):
        if quote:
            if char == quote and previous != "\\":
                quote = None
        elif char in ("'", '"'):
            quote = char
        else:
            yield position, char, previous
        previous = char


def _strip_trailing_comment(line: str) -> str:
    for position, char, previous in _unquoted(line):
        if char == "#" and previous.isspace():
            return line[:position].strip()
    return line.strip()


def _heredoc_delimiters(arguments: str) -> List[Tuple[str, str, str]]:
    """Find ``<<WORD`` markers that start a word outside quotes.

    Shifts such as ``$((1<<n))`` and quoted text are not heredocs.
    """

    delimiters = []
    for position, char, previous in _unquoted(arguments):
        if char != "<" or previous not in HEREDOC_BOUNDARY:
            continue
        match = HEREDOC_PATTERN.match(arguments, position)
        if match:
            delimiters.append(match.groups())
    return delimiters


def _read_heredocs(
    lines: Sequence[str],
    index: int,
    delimiters: Sequence[Tuple[str, str, str]],
    start_line: int,
) -> Tuple[List[str], int]:
    bodies: List[str] = []
    for _, _, word in delimiters:
        body: List[str] = []
        while True:
            if index >= len(lines):
                raise ParseError(f"unterminated heredoc <<{word}", line=start_line)
            raw = lines[index]
            index += 1
            if raw.strip() == word:
                break
            body.append(raw)
        bodies.append("\n".join(body + [word]))
    return bodies, index
