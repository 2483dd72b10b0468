"""
ssh-config-style text <-> ConfigDocument
"""
import re
from typing import Dict, List, Optional, Set, Tuple

from ...core.exceptions import ParseError
from ...core.logging import get_logger
from .document import ConfigDocument, HostBlock, RawSegment, Segment

logger = get_logger(__name__)

# "Key value" or "Key=value", keyword case-insensitive
KEY_VALUE_PATTERN = re.compile(r"^(?P<key>[A-Za-z][A-Za-z0-9]*)(?:\s*=\s*|\s+)(?P<value>.*?)\s*$")
BLOCK_KEYWORDS = ("host", "match")
WILDCARD_CHARS = set("*?!")


# ============================================================
# Helper Functions
# ============================================================

def _keyword(line: str) -> Optional[str]:
    """Lower-cased first word of a non-comment line"""
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    return re.split(r"[\s=]", stripped, maxsplit=1)[0].lower()


def _is_header(line: str) -> bool:
    return _keyword(line) in BLOCK_KEYWORDS


def _is_filler(line: str) -> bool:
    """Blank and comment lines"""
    stripped = line.strip()
    return not stripped or stripped.startswith("#")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _split_chunks(lines: List[str]) -> Tuple[List[str], List[Tuple[int, List[str]]]]:
    """
    Split lines into the preamble and (start_line, lines) chunks, one per
    Host/Match header.
    """
    preamble: List[str] = []
    chunks: List[Tuple[int, List[str]]] = []

    for number, line in enumerate(lines, start=1):
        if _is_header(line):
            chunks.append((number, [line]))
        elif chunks:
            chunks[-1][1].append(line)
        else:
            preamble.append(line)

    return preamble, chunks


def _split_trailer(chunk: List[str]) -> Tuple[List[str], List[str]]:
    """Detach trailing blank/comment lines from a block"""
    end = len(chunk)
    while end > 1 and _is_filler(chunk[end - 1]):
        end -= 1
    return chunk[:end], chunk[end:]


# ============================================================
# Block Parsing
# ============================================================

def _parse_host_block(
    start: int,
    block_lines: List[str],
    seen: Set[str],
) -> Tuple[Optional[HostBlock], Optional[ParseError]]:
    """
    Parse one "Host" chunk.

    Returns:
        (block, None) for a managed block, (None, None) for a foreign block
        (several or wildcard patterns) and (None, error) for a malformed one.
    """
    header = block_lines[0].strip()
    match = KEY_VALUE_PATTERN.match(header)
    patterns = match.group("value").split() if match else []

    if not patterns:
        return None, ParseError("Host line without a name", start)
    if len(patterns) > 1 or WILDCARD_CHARS & set(patterns[0]):
        return None, None

    name = _unquote(patterns[0])
    if name in seen:
        return None, ParseError(f"duplicate Host '{name}'", start)

    fields: Dict[str, str] = {}
    extra: List[str] = []
    for offset, line in enumerate(block_lines[1:], start=1):
        stripped = line.strip()
        if _is_filler(line):
            if stripped:
                extra.append(stripped)
            continue

        kv = KEY_VALUE_PATTERN.match(stripped)
        if kv is None or not kv.group("value"):
            return None, ParseError(f"'{stripped}' has no value in Host '{name}'", start + offset)

        key = kv.group("key").lower()
        if key in ("hostname", "user", "identityfile") and key not in fields:
            fields[key] = _unquote(kv.group("value"))
        else:
            extra.append(stripped)

    if not fields.get("hostname"):
        return None, ParseError(f"Host '{name}' has no HostName", start)

    block = HostBlock(
        name=name,
        hostname=fields["hostname"],
        user=fields.get("user"),
        identity_file=fields.get("identityfile"),
        extra=extra,
        source=list(block_lines),
    )
    return block, None


# ============================================================
# Public API
# ============================================================

def parse_document(text: str) -> ConfigDocument:
    """
    Parse ssh-config-style text.

    Never raises on bad blocks: they are kept as raw text and reported in
    ConfigDocument.diagnostics.
    """
    segments: List[Segment] = []
    diagnostics: List[ParseError] = []
    seen: Set[str] = set()

    def add_raw(lines: List[str]) -> None:
        if not lines:
            return
        if segments and isinstance(segments[-1], RawSegment):
            segments[-1].lines.extend(lines)
        else:
            segments.append(RawSegment(list(lines)))

    preamble, chunks = _split_chunks(text.splitlines())
    add_raw(preamble)

    for start, chunk in chunks:
        block_lines, trailer = _split_trailer(chunk)

        block, error = None, None
        if _keyword(block_lines[0]) == "host":
            block, error = _parse_host_block(start, block_lines, seen)

        if block is not None:
            seen.add(block.name)
            segments.append(block)
        else:
            if error is not None:
                logger.warning(f"Skipping malformed block: {error}")
                diagnostics.append(error)
            add_raw(block_lines)
        add_raw(trailer)

    return ConfigDocument(segments=segments, diagnostics=diagnostics)


def serialize_document(doc: ConfigDocument) -> str:
    lines: List[str] = []
    for segment in doc.segments:
        lines.extend(segment.render())
    if not lines:
        return ""
    return "\n".join(lines) + "\n"
