"""Cross-file name resolution.

Merges the per-file symbol tables and reference lists into one ProjectIndex
and binds every reference to the symbols it may denote. The per-file records
are only read; the index and its graph are the only things written.
"""
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple

import networkx as nx

from .models import (
    FileAnalysis, Reference, ReferenceKind, ResolutionConfidence, ResolutionEdge, Scope,
    ScopeKind, Symbol, SymbolKind, module_scope_id,
)

logger = logging.getLogger(__name__)

ModuleKey = Tuple[str, ...]

_RECEIVER_NAMES = ('self', 'cls')


def module_parts_for(path: str) -> ModuleKey:
    """Dotted-path parts a file is importable as, from the filesystem root down.

    ``pkg/sub/mod.py`` -> ``('pkg', 'sub', 'mod')``; ``pkg/__init__.py`` ->
    ``('pkg',)``. Import resolution matches these by suffix.
    """
    parts = Path(path).with_suffix('').parts
    if parts and parts[-1] == '__init__':
        parts = parts[:-1]
    return tuple(parts)


@dataclass(frozen=True)
class _Target:
    """What a name denotes: project symbols, or a project module/package."""
    symbols: Tuple[str, ...] = ()
    module: Optional[ModuleKey] = None


@dataclass
class ProjectIndex:
    """Global view of the analyzed files.

    ``graph`` is a MultiDiGraph whose nodes are symbol ids and module scope
    ids. Every (reference, candidate) pair is one edge from the reference's
    scope to the candidate symbol, keyed by reference id and carrying the
    resolution confidence and reference kind.
    """
    files: Dict[str, FileAnalysis]
    symbols: Dict[str, Symbol]
    scopes: Dict[str, Scope]
    modules: Dict[ModuleKey, str]
    references: Dict[str, Reference]
    edges: Dict[str, ResolutionEdge] = field(default_factory=dict)
    graph: nx.MultiDiGraph = field(default_factory=nx.MultiDiGraph)

    def incoming(self, symbol_id: str) -> Iterator[Tuple[Reference, ResolutionConfidence]]:
        """References bound to a symbol, with their confidence."""
        if symbol_id not in self.graph:
            return
        for _source, _target, ref_id, data in self.graph.in_edges(symbol_id, keys=True, data=True):
            yield self.references[ref_id], data['confidence']

    def is_partial(self, path: str) -> bool:
        analysis = self.files.get(path)
        return analysis is not None and analysis.partial


class CrossFileResolver:
    """Bind references to symbols across all analyzed files.

    Resolution rules, in priority order:

    1. Lexical: bare names walk the scope chain (class bodies are invisible
       to nested functions). ``global`` names are looked up from the module
       scope, ``nonlocal`` names from the enclosing function. A symbol or an
       import that leads to one is EXACT; any other local binding shadows the
       name (UNRESOLVED).
    2. Attribute: chains are walked through modules and classes (EXACT);
       ``self.x``/``cls.x`` bind in the enclosing class (EXACT); anything else
       matches every class member of that name (PROBABLE).
    3. Import: the imported module-level symbol (EXACT).
    4. Dynamic string: every symbol of that name (PROBABLE).
    """

    def __init__(self, analyses: Iterable[FileAnalysis]):
        self.analyses = sorted(analyses, key=lambda a: a.path)

        self.files: Dict[str, FileAnalysis] = {}
        self.symbols: Dict[str, Symbol] = {}
        self.scopes: Dict[str, Scope] = {}
        self.references: Dict[str, Reference] = {}
        self.modules: Dict[ModuleKey, str] = {}
        self._packages: Set[ModuleKey] = set()
        self._by_tail: Dict[str, List[ModuleKey]] = defaultdict(list)

        self._scope_symbols: Dict[str, Dict[str, List[str]]] = defaultdict(lambda: defaultdict(list))
        self._imports: Dict[Tuple[str, str], List[Reference]] = defaultdict(list)
        self._wildcards: Dict[str, List[Reference]] = defaultdict(list)
        self._by_name: Dict[str, List[str]] = defaultdict(list)
        self._members_by_name: Dict[str, List[str]] = defaultdict(list)
        self._module_cache: Dict[Tuple[ModuleKey, str], Optional[ModuleKey]] = {}

        self._build_tables()

    def _build_tables(self):
        for analysis in self.analyses:
            self.files[analysis.path] = analysis
            key = analysis.module_parts
            self.modules.setdefault(key, analysis.path)
            if len(key) > 1:
                self._packages.add(key[:-1])

            for scope in analysis.scopes:
                self.scopes[scope.id] = scope
            for symbol in analysis.symbols:
                self.symbols[symbol.id] = symbol
                self._scope_symbols[symbol.scope_id][symbol.name].append(symbol.id)
                self._by_name[symbol.name].append(symbol.id)
            for ref in analysis.references:
                self.references[ref.id] = ref
                if ref.kind != ReferenceKind.IMPORT:
                    continue
                if ref.is_wildcard:
                    self._wildcards[analysis.path].append(ref)
                elif ref.alias:
                    self._imports[(ref.scope_id, ref.alias)].append(ref)

        for symbol in self.symbols.values():
            scope = self.scopes.get(symbol.scope_id)
            if scope is not None and scope.kind == ScopeKind.CLASS:
                self._members_by_name[symbol.name].append(symbol.id)

        for key in set(self.modules) | self._packages:
            if key:
                self._by_tail[key[-1]].append(key)

    def resolve(self) -> ProjectIndex:
        """Resolve every reference and build the global index."""
        index = ProjectIndex(
            files=self.files,
            symbols=self.symbols,
            scopes=self.scopes,
            modules=self.modules,
            references=self.references,
        )
        graph = index.graph
        for analysis in self.analyses:
            graph.add_node(analysis.module_scope_id, kind='module', file=analysis.path)
        for symbol in self.symbols.values():
            graph.add_node(symbol.id, kind=symbol.kind.value, file=symbol.file)

        stats = Counter()
        for ref in self.references.values():
            candidates, confidence = self._resolve(ref)
            index.edges[ref.id] = ResolutionEdge(
                reference_id=ref.id,
                candidates=candidates,
                confidence=confidence,
                kind=ref.kind,
            )
            for candidate in candidates:
                graph.add_edge(ref.scope_id, candidate, key=ref.id,
                               confidence=confidence, kind=ref.kind)
            stats[confidence] += 1

        logger.debug(
            "Resolved %d references: %d exact, %d probable, %d unresolved",
            len(self.references), stats[ResolutionConfidence.EXACT],
            stats[ResolutionConfidence.PROBABLE], stats[ResolutionConfidence.UNRESOLVED],
        )
        return index

    # ------------------------------------------------------------------ rules

    def _resolve(self, ref: Reference) -> Tuple[Tuple[str, ...], ResolutionConfidence]:
        if ref.kind == ReferenceKind.IMPORT:
            return self._resolve_import(ref)
        if ref.kind == ReferenceKind.DYNAMIC_STRING_USE:
            return _probable(self._by_name.get(ref.name, ()))
        if ref.is_member:
            return self._resolve_member(ref)

        target, _bound = self._lookup_lexical(ref.name, ref.scope_id)
        if target is not None and target.symbols:
            return target.symbols, ResolutionConfidence.EXACT
        return (), ResolutionConfidence.UNRESOLVED

    def _resolve_import(self, ref: Reference) -> Tuple[Tuple[str, ...], ResolutionConfidence]:
        if ref.is_wildcard or ref.is_module_import:
            return (), ResolutionConfidence.UNRESOLVED
        target = self._follow_import(ref, frozenset())
        if target is not None and target.symbols:
            return target.symbols, ResolutionConfidence.EXACT
        return (), ResolutionConfidence.UNRESOLVED

    def _resolve_member(self, ref: Reference) -> Tuple[Tuple[str, ...], ResolutionConfidence]:
        chain = ref.chain
        if len(chain) >= 2:
            head = chain[0]
            target: Optional[_Target] = None
            if head in _RECEIVER_NAMES:
                class_id = self._enclosing_class(ref.scope_id)
                if class_id is not None and len(chain) == 2:
                    target = _Target(symbols=(class_id,))
            else:
                target, _bound = self._lookup_lexical(head, ref.scope_id)

            for segment in chain[1:-1]:
                if target is None:
                    break
                target = self._member(target, segment)

            if target is not None:
                final = self._member(target, ref.name)
                if final is not None and final.symbols:
                    return final.symbols, ResolutionConfidence.EXACT

        # Receiver type unknown
        return _probable(self._members_by_name.get(ref.name, ()))

    def _lookup_lexical(self, name: str, scope_id: str) -> Tuple[Optional[_Target], bool]:
        """Find what ``name`` denotes when read in ``scope_id``.

        Returns:
            (target, bound). ``bound`` is True when some scope binds the name,
            even if it is not a project symbol (parameter, external import).
        """
        scope = self.scopes.get(scope_id)
        if scope is None:
            return None, False
        module_scope = self.scopes.get(module_scope_id(scope.file))

        first = True
        if name in scope.globals:
            scope = module_scope
        elif name in scope.nonlocals:
            # Bound by an enclosing function, never by this scope or a class body
            scope = self.scopes.get(scope.parent_id) if scope.parent_id else None
            first = False

        while scope is not None:
            # Class bodies are only visible to code directly inside them
            if first or scope.kind != ScopeKind.CLASS:
                target, bound = self._lookup_in_scope(scope, name)
                if bound:
                    return target, True
            first = False
            scope = self.scopes.get(scope.parent_id) if scope.parent_id else None

        file_path = module_scope.file if module_scope is not None else None
        for wildcard in self._wildcards.get(file_path, ()):
            key = self._find_module_text(wildcard.module, wildcard.file)
            if key is None:
                continue
            target = self._module_member(key, name, frozenset({wildcard.id}))
            if target is not None:
                return target, True
        return None, False

    def _lookup_in_scope(self, scope: Scope, name: str) -> Tuple[Optional[_Target], bool]:
        ids = self._scope_symbols.get(scope.id, {}).get(name)
        if ids:
            return _Target(symbols=tuple(ids)), True

        imports = self._imports.get((scope.id, name))
        if imports:
            # Later imports rebind earlier ones
            for imp in reversed(imports):
                target = self._follow_import(imp, frozenset())
                if target is not None:
                    return target, True
            return None, True

        if name in scope.bindings:
            return None, True
        return None, False

    def _follow_import(self, ref: Reference, seen: FrozenSet[str]) -> Optional[_Target]:
        """What the local name bound by an import denotes, through re-exports."""
        if ref.id in seen or not ref.module:
            return None
        seen = seen | {ref.id}

        if ref.is_module_import:
            parts = tuple(ref.module.split('.'))
            # `import a.b` binds `a`; `import a.b as c` binds `a.b`
            wanted = parts[:1] if ref.alias == parts[0] else parts
            key = self._find_module(wanted, ref.file)
            return _Target(module=key) if key is not None else None

        key = self._find_module_text(ref.module, ref.file)
        if key is None:
            return None
        return self._module_member(key, ref.name, seen)

    def _module_member(self, key: ModuleKey, name: str, seen: FrozenSet[str]) -> Optional[_Target]:
        """Resolve ``name`` as an attribute of the module ``key``."""
        path = self.modules.get(key)
        if path is not None:
            scope_id = module_scope_id(path)
            ids = self._scope_symbols.get(scope_id, {}).get(name)
            if ids:
                return _Target(symbols=tuple(ids))
            for imp in reversed(self._imports.get((scope_id, name), ())):
                target = self._follow_import(imp, seen)
                if target is not None:
                    return target

        child = key + (name,)
        if child in self.modules or child in self._packages:
            return _Target(module=child)
        return None

    def _member(self, target: _Target, name: str) -> Optional[_Target]:
        if target.module is not None:
            return self._module_member(target.module, name, frozenset())
        ids: List[str] = []
        for symbol_id in target.symbols:
            if self.symbols[symbol_id].kind == SymbolKind.CLASS:
                ids.extend(self._scope_symbols.get(symbol_id, {}).get(name, ()))
        return _Target(symbols=tuple(ids)) if ids else None

    def _enclosing_class(self, scope_id: str) -> Optional[str]:
        scope = self.scopes.get(scope_id)
        while scope is not None:
            if scope.kind == ScopeKind.CLASS:
                return scope.id
            scope = self.scopes.get(scope.parent_id) if scope.parent_id else None
        return None

    # ------------------------------------------------------------ module paths

    def _find_module_text(self, module: Optional[str], importer: str) -> Optional[ModuleKey]:
        """Resolve the module text of a ``from X import`` statement."""
        if not module:
            return None
        stripped = module.lstrip('.')
        dots = len(module) - len(stripped)
        rest = tuple(stripped.split('.')) if stripped else ()
        if dots == 0:
            return self._find_module(rest, importer)

        analysis = self.files.get(importer)
        if analysis is None:
            return None
        package = analysis.module_parts
        if Path(importer).stem != '__init__':
            package = package[:-1]
        if dots - 1 > len(package):
            return None
        key = package[:len(package) - (dots - 1)] + rest
        if key in self.modules or key in self._packages:
            return key
        return None

    def _find_module(self, parts: ModuleKey, importer: str) -> Optional[ModuleKey]:
        """Find the project module an absolute dotted path refers to.

        Modules match by suffix. Files importable from a directory that
        contains the importer win, closest directory first; otherwise the
        shallowest match is taken.
        """
        if not parts:
            return None
        importer_dir = Path(importer).parent.parts
        cache_key = (parts, str(Path(importer).parent))
        if cache_key in self._module_cache:
            return self._module_cache[cache_key]

        candidates = [
            key for key in self._by_tail.get(parts[-1], ())
            if len(key) >= len(parts) and key[len(key) - len(parts):] == parts
        ]
        found = None
        if candidates:
            def root_of(key: ModuleKey) -> ModuleKey:
                return key[:len(key) - len(parts)]

            preferred = [k for k in candidates if importer_dir[:len(root_of(k))] == root_of(k)]
            if preferred:
                found = max(preferred, key=lambda k: (len(root_of(k)), k in self.modules, k))
            else:
                found = min(candidates, key=lambda k: (len(root_of(k)), k not in self.modules, k))

        self._module_cache[cache_key] = found
        return found


def _probable(ids: Iterable[str]) -> Tuple[Tuple[str, ...], ResolutionConfidence]:
    ids = tuple(ids)
    if ids:
        return ids, ResolutionConfidence.PROBABLE
    return (), ResolutionConfidence.UNRESOLVED
