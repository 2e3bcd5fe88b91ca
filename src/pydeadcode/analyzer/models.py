"""Records shared by every analysis phase.

Everything here is immutable once built. Per-file records are produced by the
Symbol Table Builder and the Usage Collector; the resolver and the confidence
engine only ever read them and refer to them by their string ids.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class SymbolKind(str, Enum):
    """What a definition site defines."""
    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    MODULE_VARIABLE = "module_variable"


class ScopeKind(str, Enum):
    MODULE = "module"
    CLASS = "class"
    FUNCTION = "function"


class ReferenceKind(str, Enum):
    """How a name was used.

    NAME_LOAD is a bare read of a name that is not itself called
    (``handlers = [on_start]``); everything else mirrors the syntax it came from.
    """
    NAME_LOAD = "name_load"
    CALL = "call"
    ATTRIBUTE_ACCESS = "attribute_access"
    IMPORT = "import"
    DYNAMIC_STRING_USE = "dynamic_string_use"


class ResolutionConfidence(str, Enum):
    EXACT = "exact"
    PROBABLE = "probable"
    UNRESOLVED = "unresolved"


class WarningKind(str, Enum):
    PARSE_ERROR = "parse_error"
    PARTIAL_PARSE = "partial_parse"
    UNREADABLE = "unreadable"


@dataclass(frozen=True)
class Location:
    """Source position. Lines are 1-based, columns 0-based."""
    file: str
    line: int
    column: int
    end_line: int
    end_column: int


@dataclass(frozen=True)
class Symbol:
    """A named definition site (function, method, class, module variable)."""
    id: str  # file::Outer.inner (with #n for redefinitions)
    name: str
    qualified_name: str  # Outer.inner
    kind: SymbolKind
    scope_id: str  # scope the name is bound in (the *enclosing* scope)
    location: Location
    start_line: int  # first decorator line, or location.line
    decorators: Tuple[str, ...] = ()
    exported: bool = False
    is_dunder: bool = False

    @property
    def file(self) -> str:
        return self.location.file

    @property
    def size(self) -> int:
        """Number of source lines the definition spans, decorators included."""
        return self.location.end_line - self.start_line + 1


@dataclass(frozen=True)
class Scope:
    """A lexical region: module, class body or function body."""
    id: str
    kind: ScopeKind
    file: str
    parent_id: Optional[str] = None
    owner_id: Optional[str] = None  # symbol that opens this scope
    children: Tuple[str, ...] = ()
    bindings: frozenset = frozenset()  # local names that are not symbols
    globals: frozenset = frozenset()  # names declared global
    nonlocals: frozenset = frozenset()  # names declared nonlocal


@dataclass(frozen=True)
class Reference:
    """An observed use of a name.

    ``chain`` holds the static dotted path ending with ``name``: ``("os",
    "path", "join")`` for ``os.path.join``. When the receiver is not a plain
    name (``make().run()``) only the trailing attribute is kept and
    ``is_member`` tells the resolver the name was reached through a receiver.
    """
    id: str
    name: str
    kind: ReferenceKind
    scope_id: str
    location: Location
    chain: Tuple[str, ...] = ()
    is_member: bool = False
    module: Optional[str] = None  # imports: dotted module, leading dots kept
    alias: Optional[str] = None  # imports: local name bound by the import
    is_wildcard: bool = False
    is_module_import: bool = False  # `import a.b` rather than `from a import b`

    @property
    def file(self) -> str:
        return self.location.file


@dataclass(frozen=True)
class ResolutionEdge:
    """A reference bound to zero or more candidate symbols."""
    reference_id: str
    candidates: Tuple[str, ...]
    confidence: ResolutionConfidence
    kind: ReferenceKind


@dataclass(frozen=True)
class AnalysisWarning:
    file: str
    line: int
    kind: WarningKind
    message: str

    def __str__(self) -> str:
        return f"{self.file}:{self.line}: {self.message}"


@dataclass(frozen=True)
class FileAnalysis:
    """Everything the per-file phase learned about one file."""
    path: str
    module_parts: Tuple[str, ...]
    symbols: Tuple[Symbol, ...] = ()
    scopes: Tuple[Scope, ...] = ()
    references: Tuple[Reference, ...] = ()
    partial: bool = False
    warnings: Tuple[AnalysisWarning, ...] = ()

    @property
    def module_scope_id(self) -> str:
        return module_scope_id(self.path)


@dataclass(frozen=True)
class Finding:
    """A candidate dead symbol with its confidence and the reasons behind it."""
    symbol: Symbol
    confidence: int
    reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FindingRecord:
    """Canonical output record consumed by the report emitter."""
    file: str
    line: int
    symbol_name: str
    kind: SymbolKind
    confidence: int
    size: int = 0
    reasons: Tuple[str, ...] = field(default=(), compare=False)

    def to_dict(self, include_reasons: bool = False) -> Dict[str, object]:
        data: Dict[str, object] = {
            "file": self.file,
            "line": self.line,
            "symbol_name": self.symbol_name,
            "kind": self.kind.value,
            "confidence": self.confidence,
        }
        if include_reasons:
            data["reasons"] = list(self.reasons)
        return data


def module_scope_id(path: str) -> str:
    """Id of a file's module scope."""
    return f"{path}::<module>"


def is_dunder(name: str) -> bool:
    """True for __magic__ names (more than just underscores)."""
    return name.startswith('__') and name.endswith('__') and len(name) > 4
