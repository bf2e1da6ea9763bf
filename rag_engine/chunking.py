"""
Document chunking.

Splits raw document text into ordered chunks sized for the embedding model.
Plain text is packed paragraph by paragraph with a sliding overlap; Markdown
is split along its heading tree so chunks never mix unrelated sections.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from .config import MAX_TOKENS_PER_CHUNK, OVERLAP_TOKENS, WORDS_PER_TOKEN
from .errors import UnsupportedFileTypeError
from .logging_config import logger
from .models import ChunkMetadata, TextChunk
from .tokens import count_words, estimate_tokens, words_for_tokens


class ChunkingStrategy(str, Enum):
    PLAIN_TEXT = "plain_text"
    MARKDOWN = "markdown"


# PDF and DOCX are converted to text first, then chunked as plain text
EXTENSION_STRATEGIES: Dict[str, ChunkingStrategy] = {
    "txt": ChunkingStrategy.PLAIN_TEXT,
    "md": ChunkingStrategy.MARKDOWN,
    "markdown": ChunkingStrategy.MARKDOWN,
    "pdf": ChunkingStrategy.PLAIN_TEXT,
    "docx": ChunkingStrategy.PLAIN_TEXT,
}

SUPPORTED_EXTENSIONS = frozenset(EXTENSION_STRATEGIES)

_HEADING = re.compile(r"^(#{1,6})\s+(.+)$")
_FENCE = re.compile(r"^\s{0,3}(```|~~~)")

# (1-based line number of the first line, paragraph text)
_Paragraph = Tuple[int, str]


def strategy_for_extension(extension: str) -> ChunkingStrategy:
    """Resolve a file extension (with or without the dot) to its chunking strategy."""
    ext = extension.lower().lstrip(".")
    try:
        return EXTENSION_STRATEGIES[ext]
    except KeyError:
        raise UnsupportedFileTypeError(ext, SUPPORTED_EXTENSIONS) from None


@dataclass
class _Section:
    heading: str  # raw heading line, "" for text before the first heading
    level: int
    heading_path: Tuple[str, ...]
    start_line: int
    lines: List[Tuple[int, str]] = field(default_factory=list)


@dataclass
class _Piece:
    heading: str
    paragraphs: List[_Paragraph]
    metadata: ChunkMetadata
    overlap: List[_Paragraph] = field(default_factory=list)

    def render(self) -> str:
        parts = [self.heading] if self.heading else []
        parts.extend(text for _, text in self.overlap)
        parts.extend(text for _, text in self.paragraphs)
        return "\n\n".join(parts).strip()


class Chunker:
    """
    Splits documents into chunks of at most ``max_tokens`` estimated tokens.

    Args:
        max_tokens: Upper bound for a chunk's token estimate
        overlap_tokens: Budget for text repeated from the previous chunk
        words_per_token: Ratio used by the word-count token heuristic
    """

    def __init__(
        self,
        max_tokens: int = MAX_TOKENS_PER_CHUNK,
        overlap_tokens: int = OVERLAP_TOKENS,
        words_per_token: float = WORDS_PER_TOKEN,
    ):
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if overlap_tokens < 0 or overlap_tokens >= max_tokens:
            raise ValueError("overlap_tokens must be >= 0 and smaller than max_tokens")

        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens
        self.words_per_token = words_per_token
        self._max_words = words_for_tokens(max_tokens, words_per_token)
        self._overlap_words = words_for_tokens(overlap_tokens, words_per_token)
        if self._max_words < 1:
            raise ValueError("max_tokens is too small to hold a single word")

    def split(self, content: str, file_extension: str) -> List[TextChunk]:
        """
        Split document content into ordered chunks.

        Raises:
            UnsupportedFileTypeError: If the extension has no chunking strategy
        """
        strategy = strategy_for_extension(file_extension)

        if strategy is ChunkingStrategy.PLAIN_TEXT:
            chunks = self._split_plain_text(content)
        elif strategy is ChunkingStrategy.MARKDOWN:
            chunks = self._split_markdown(content)
        else:
            raise AssertionError(f"Unhandled chunking strategy: {strategy}")

        logger.debug("Chunked document", strategy=strategy.value, chunk_count=len(chunks))
        return chunks

    # ==================== Plain text ====================

    def _split_plain_text(self, content: str) -> List[TextChunk]:
        paragraphs = [
            (line_no, line.rstrip())
            for line_no, line in enumerate(content.splitlines(), start=1)
            if line.strip()
        ]
        if not paragraphs:
            logger.warning("No paragraphs found in text")
            return []

        groups = self._pack(paragraphs, self._max_words, self._overlap_words)
        return [
            self._make_chunk(
                "\n".join(text for _, text in group).strip(),
                ChunkMetadata(start_line=group[0][0]),
            )
            for group in groups
        ]

    # ==================== Markdown ====================

    def _split_markdown(self, content: str) -> List[TextChunk]:
        sections = _parse_sections(content)
        logger.debug("Parsed Markdown sections", section_count=len(sections))

        pieces: List[_Piece] = []
        for section in sections:
            pieces.extend(self._split_section(section))

        self._add_contextual_overlap(pieces)
        return [self._make_chunk(piece.render(), piece.metadata) for piece in pieces]

    def _split_section(self, section: _Section) -> List[_Piece]:
        metadata = ChunkMetadata(
            heading_path=section.heading_path,
            level=section.level,
            start_line=section.start_line,
        )
        paragraphs = _group_paragraphs(section.lines)
        if not paragraphs:
            # heading without body still becomes a chunk; blank preamble does not
            return [_Piece(section.heading, [], metadata)] if section.heading else []

        # every sub-chunk repeats the heading, so it eats into the budget
        budget = max(1, self._max_words - count_words(section.heading))
        groups = self._pack(paragraphs, budget, overlap_words=0)
        return [_Piece(section.heading, group, metadata) for group in groups]

    def _add_contextual_overlap(self, pieces: List[_Piece]) -> None:
        """Repeat trailing paragraphs of the previous chunk, within one top-level section only."""
        for previous, current in zip(pieces, pieces[1:]):
            if not _same_top_section(previous.metadata, current.metadata):
                continue
            used = count_words(current.heading) + sum(count_words(t) for _, t in current.paragraphs)
            limit = min(self._overlap_words, self._max_words - used)
            current.overlap = _trailing(previous.paragraphs, limit)

    # ==================== Shared helpers ====================

    def _pack(
        self,
        paragraphs: List[_Paragraph],
        budget_words: int,
        overlap_words: int,
    ) -> List[List[_Paragraph]]:
        """
        Greedily group paragraphs so that each group stays within ``budget_words``.

        When a group is closed, the next one is seeded with trailing paragraphs
        of the closed group totalling at most ``overlap_words`` (and leaving room
        for the paragraph that triggered the split).
        """
        groups: List[List[_Paragraph]] = []
        current: List[_Paragraph] = []
        current_words = 0

        for para in _fit_paragraphs(paragraphs, budget_words):
            words = count_words(para[1])
            if current and current_words + words > budget_words:
                groups.append(current)
                current = _trailing(current, min(overlap_words, budget_words - words))
                current_words = sum(count_words(t) for _, t in current)
            current.append(para)
            current_words += words

        if current:
            groups.append(current)
        return groups

    def _make_chunk(self, text: str, metadata: ChunkMetadata) -> TextChunk:
        return TextChunk(
            text=text,
            token_count=estimate_tokens(text, self.words_per_token),
            metadata=metadata,
        )


def _parse_sections(content: str) -> List[_Section]:
    """
    Parse Markdown into sections keyed by ATX headings.

    The heading stack holds (level, title) pairs for the current ancestry;
    a new heading pops every entry at its level or deeper before being pushed.
    """
    sections: List[_Section] = []
    current: Optional[_Section] = None
    stack: List[Tuple[int, str]] = []
    fence: Optional[str] = None

    for line_no, line in enumerate(content.splitlines(), start=1):
        heading = None
        fence_match = _FENCE.match(line)
        if fence is not None:
            if fence_match and fence_match.group(1) == fence:
                fence = None
        elif fence_match:
            fence = fence_match.group(1)
        else:
            heading = _HEADING.match(line)

        if heading:
            if current is not None:
                sections.append(current)

            level = len(heading.group(1))
            title = heading.group(2).strip().rstrip("#").strip() or heading.group(2).strip()
            while stack and stack[-1][0] >= level:
                stack.pop()
            stack.append((level, title))

            current = _Section(
                heading=line.strip(),
                level=level,
                heading_path=tuple(t for _, t in stack),
                start_line=line_no,
            )
        else:
            if current is None:
                # Document starts without a heading
                current = _Section(heading="", level=0, heading_path=(), start_line=line_no)
            current.lines.append((line_no, line))

    if current is not None:
        sections.append(current)
    return sections


def _group_paragraphs(lines: List[Tuple[int, str]]) -> List[_Paragraph]:
    """Blank lines separate paragraphs."""
    paragraphs: List[_Paragraph] = []
    buffer: List[str] = []
    start = 0

    for line_no, line in lines:
        if line.strip():
            if not buffer:
                start = line_no
            buffer.append(line.rstrip())
        elif buffer:
            paragraphs.append((start, "\n".join(buffer)))
            buffer = []

    if buffer:
        paragraphs.append((start, "\n".join(buffer)))
    return paragraphs


def _fit_paragraphs(paragraphs: List[_Paragraph], budget_words: int) -> Iterator[_Paragraph]:
    """Cut paragraphs longer than the budget into word windows."""
    for line_no, text in paragraphs:
        words = text.split()
        if len(words) <= budget_words:
            yield line_no, text
            continue
        for i in range(0, len(words), budget_words):
            yield line_no, " ".join(words[i:i + budget_words])


def _trailing(paragraphs: List[_Paragraph], limit_words: int) -> List[_Paragraph]:
    picked: List[_Paragraph] = []
    total = 0
    for para in reversed(paragraphs):
        words = count_words(para[1])
        if total + words > limit_words:
            break
        picked.insert(0, para)
        total += words
    return picked


def _same_top_section(a: ChunkMetadata, b: ChunkMetadata) -> bool:
    if not a.heading_path or not b.heading_path:
        return False
    return a.heading_path[0] == b.heading_path[0]
