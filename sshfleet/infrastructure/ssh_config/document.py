"""
Fleet config document model

A document is the ordered list of segments of an ssh-config-style file.
HostBlock segments are the servers the fleet manages; RawSegment holds
everything else (comments, blank lines, global options, Match blocks,
wildcard Host blocks, malformed blocks) and is written back untouched.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Union

from ...core.exceptions import ParseError


@dataclass
class HostBlock:
    """
    One managed "Host <name>" block.

    extra keeps the other lines of the block (Port, ProxyJump, comments...)
    stripped and in file order. source holds the original lines when the
    block was parsed and has not been modified since; it is ignored by
    equality.
    """
    name: str
    hostname: str
    user: Optional[str] = None
    identity_file: Optional[str] = None
    extra: List[str] = field(default_factory=list)
    source: Optional[List[str]] = field(default=None, compare=False, repr=False)

    def render(self) -> List[str]:
        if self.source is not None:
            return list(self.source)

        lines = [f"Host {self.name}", f"    HostName {self.hostname}"]
        if self.user:
            lines.append(f"    User {self.user}")
        if self.identity_file:
            lines.append(f"    IdentityFile {_quote(self.identity_file)}")
        for line in self.extra:
            lines.append(f"    {line}")
        return lines


@dataclass
class RawSegment:
    """Lines passed through verbatim"""
    lines: List[str]

    def render(self) -> List[str]:
        return list(self.lines)


Segment = Union[HostBlock, RawSegment]


@dataclass
class ConfigDocument:
    segments: List[Segment] = field(default_factory=list)
    diagnostics: List[ParseError] = field(default_factory=list, compare=False)

    @property
    def hosts(self) -> List[HostBlock]:
        return [s for s in self.segments if isinstance(s, HostBlock)]

    def names(self) -> List[str]:
        return [h.name for h in self.hosts]

    def find(self, name: str) -> Optional[HostBlock]:
        for host in self.hosts:
            if host.name == name:
                return host
        return None

    def index_of(self, name: str) -> Optional[int]:
        for i, segment in enumerate(self.segments):
            if isinstance(segment, HostBlock) and segment.name == name:
                return i
        return None


def _quote(value: str) -> str:
    """Quote values containing whitespace, as ssh_config expects"""
    if any(c.isspace() for c in value) and not value.startswith('"'):
        return f'"{value}"'
    return value
