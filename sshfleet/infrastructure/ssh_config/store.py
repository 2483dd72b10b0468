"""
Fleet config file storage
"""
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from ...core.constants import SSH_CONFIG_MODE
from ...core.exceptions import DurabilityError, NotFound, ParseError, ValidationError
from ...core.logging import get_logger
from .document import ConfigDocument, HostBlock, RawSegment, Segment
from .parser import parse_document, serialize_document

logger = get_logger(__name__)

# Characters that would make a Host line read back as a pattern or a quoted name
RESERVED_NAME_CHARS = set("*?!\"")


def validate_host_name(name: str) -> str:
    """
    Raises:
        ValidationError: If name cannot be written as a single Host name
    """
    if not name or any(c.isspace() for c in name) or RESERVED_NAME_CHARS & set(name):
        raise ValidationError(f"Invalid host block name: {name!r}")
    return name


def _is_blank(segment: Segment) -> bool:
    return isinstance(segment, RawSegment) and all(not line.strip() for line in segment.lines)


def _ends_with_blank(segments: List[Segment]) -> bool:
    if not segments:
        return True
    lines = segments[-1].render()
    return not lines or not lines[-1].strip()


def _normalize(segments: List[Segment]) -> List[Segment]:
    """Merge adjacent raw segments and drop empty ones, as parsing would"""
    result: List[Segment] = []
    for segment in segments:
        if isinstance(segment, RawSegment):
            if not segment.lines:
                continue
            if result and isinstance(result[-1], RawSegment):
                result[-1] = RawSegment(result[-1].lines + segment.lines)
                continue
        result.append(segment)
    return result


class SshConfigStore:
    """
    Reads, edits and atomically rewrites the fleet config file.

    Documents are treated as values: add_or_replace and remove return a new
    document and leave their argument untouched.
    """

    def __init__(self, mode: int = SSH_CONFIG_MODE):
        self.mode = mode

    # --------------------
    # Text
    # --------------------
    def parse(self, text: str) -> ConfigDocument:
        return parse_document(text)

    def serialize(self, doc: ConfigDocument) -> str:
        return serialize_document(doc)

    # --------------------
    # File
    # --------------------
    def load(self, path: Path) -> ConfigDocument:
        """
        Load the fleet config file.

        Raises:
            NotFound: If the file doesn't exist
            ParseError: If the file exists but cannot be read as text
        """
        path = Path(path).expanduser()
        if not path.exists():
            raise NotFound(f"Config file not found: {path}")

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ParseError(f"Cannot read {path}: {e}") from e

        doc = self.parse(text)
        logger.debug(f"Loaded {len(doc.hosts)} host blocks from {path}")
        return doc

    def save(self, doc: ConfigDocument, path: Path) -> None:
        """
        Write doc to path through a temp file and rename.

        Raises:
            DurabilityError: If any step fails; path is left as it was
        """
        path = Path(path).expanduser()
        tmp_name: Optional[str] = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self.serialize(doc))
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, self.mode)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise DurabilityError(f"Failed to write {path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.debug(f"Wrote {len(doc.hosts)} host blocks to {path}")

    # --------------------
    # Edits
    # --------------------
    def add_or_replace(
        self,
        doc: ConfigDocument,
        name: str,
        hostname: str,
        user: Optional[str] = None,
        identity_file: Optional[str] = None,
    ) -> ConfigDocument:
        """
        Insert a Host block for name, or replace the fields of the existing
        one in place (position and extra lines kept).
        """
        validate_host_name(name)
        if not hostname or any(c.isspace() or c == '"' for c in hostname):
            raise ValidationError(f"Host block '{name}' needs a single hostname, got {hostname!r}")
        user = user or None
        identity_file = identity_file or None

        segments = list(doc.segments)
        index = doc.index_of(name)

        if index is not None:
            old = segments[index]
            segments[index] = HostBlock(
                name=name,
                hostname=hostname,
                user=user,
                identity_file=identity_file,
                extra=list(old.extra),
            )
        else:
            if not _ends_with_blank(segments):
                segments.append(RawSegment([""]))
            segments.append(HostBlock(name=name, hostname=hostname, user=user, identity_file=identity_file))

        return ConfigDocument(segments=_normalize(segments), diagnostics=list(doc.diagnostics))

    def remove(self, doc: ConfigDocument, name: str) -> ConfigDocument:
        """Drop the Host block for name, with its blank separator; no-op if absent"""
        index = doc.index_of(name)
        if index is None:
            return doc

        segments = list(doc.segments)
        del segments[index]
        if index > 0 and _is_blank(segments[index - 1]):
            del segments[index - 1]
        elif index == 0 and segments and _is_blank(segments[0]):
            del segments[0]

        return ConfigDocument(segments=_normalize(segments), diagnostics=list(doc.diagnostics))
