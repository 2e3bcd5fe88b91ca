"""Symbol table construction: scopes and the definitions bound in them."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from tree_sitter import Node, Tree

from .models import (
    AnalysisWarning, Location, Scope, ScopeKind, Symbol, SymbolKind, WarningKind, is_dunder,
)
from .parser import first_error_line, is_error_node, node_text
from .scoping import (
    DEFINITION_TYPES, ScopeNamer, decorators_of, definition_name, export_list,
    import_aliases, parameter_names, target_names,
)

logger = logging.getLogger(__name__)


@dataclass
class _ScopeDraft:
    """Mutable scope under construction; frozen into a Scope at the end."""
    id: str
    kind: ScopeKind
    parent_id: Optional[str] = None
    owner_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    bindings: Set[str] = field(default_factory=set)
    globals: Set[str] = field(default_factory=set)
    nonlocals: Set[str] = field(default_factory=set)


class SymbolTableBuilder:
    """Build the scope tree and symbol list of one file.

    Walks the tree depth-first in document order. Entering a function or class
    definition opens a child scope; the definition's Symbol is bound in the
    *enclosing* scope, so a function is visible to its siblings.
    """

    def __init__(self, file_path: str):
        self.file_path = str(file_path)
        self.namer = ScopeNamer(self.file_path)
        self.symbols: List[Symbol] = []
        self._scopes: Dict[str, _ScopeDraft] = {}
        self._variables: List[Tuple[str, Node, Node]] = []  # (name, identifier, statement)
        self._error_lines: List[int] = []

    def build(self, tree: Tree) -> Tuple[List[Symbol], List[Scope], List[AnalysisWarning]]:
        """Extract symbols and scopes.

        Args:
            tree: Parsed tree-sitter Tree of this file

        Returns:
            (symbols, scopes, warnings). Symbols are in document order with
            module variables last; scopes start with the module scope.
        """
        root = tree.root_node
        exports = export_list(root)
        module_id = self.namer.module_scope
        self._scopes[module_id] = _ScopeDraft(id=module_id, kind=ScopeKind.MODULE)

        self._walk(root, module_id, exports)
        self._add_module_variables(module_id, exports)

        scopes = [
            Scope(
                id=draft.id,
                kind=draft.kind,
                file=self.file_path,
                parent_id=draft.parent_id,
                owner_id=draft.owner_id,
                children=tuple(draft.children),
                bindings=frozenset(draft.bindings),
                globals=frozenset(draft.globals),
                nonlocals=frozenset(draft.nonlocals),
            )
            for draft in self._scopes.values()
        ]

        warnings = []
        if self._error_lines:
            warnings.append(AnalysisWarning(
                file=self.file_path,
                line=self._error_lines[0],
                kind=WarningKind.PARTIAL_PARSE,
                message=f"skipped {len(self._error_lines)} malformed region(s)",
            ))
            logger.debug("%s: skipped malformed regions at lines %s", self.file_path, self._error_lines)

        return self.symbols, scopes, warnings

    def _walk(self, root: Node, module_id: str, exports: frozenset):
        # Stack format: (node, scope_id, qualified prefix, decorated_definition or None)
        stack = [(root, module_id, '', None)]
        while stack:
            node, scope_id, prefix, decorated = stack.pop()

            if is_error_node(node):
                self._error_lines.append(first_error_line(node))
                continue

            scope = self._scopes[scope_id]

            if node.type == 'decorated_definition':
                definition = node.child_by_field_name('definition')
                if definition is not None:
                    stack.append((definition, scope_id, prefix, node))
                continue

            if node.type in DEFINITION_TYPES:
                name = definition_name(node)
                if name is None:
                    self._error_lines.append(first_error_line(node))
                    continue
                child_id, qualname = self._define(node, name, scope, prefix, decorated, exports)
                body = node.child_by_field_name('body')
                if body is not None:
                    stack.append((body, child_id, qualname, None))
                continue

            self._record_bindings(node, scope)

            for child in reversed(node.children):
                stack.append((child, scope_id, prefix, None))

    def _define(self, node: Node, name: str, scope: _ScopeDraft, prefix: str,
                decorated: Optional[Node], exports: frozenset) -> Tuple[str, str]:
        """Create the Symbol for a definition and open its scope."""
        symbol_id, qualname = self.namer.definition_id(prefix, name)

        if node.type == 'class_definition':
            kind = SymbolKind.CLASS
            scope_kind = ScopeKind.CLASS
        else:
            kind = SymbolKind.METHOD if scope.kind == ScopeKind.CLASS else SymbolKind.FUNCTION
            scope_kind = ScopeKind.FUNCTION

        outer = decorated if decorated is not None else node
        self.symbols.append(Symbol(
            id=symbol_id,
            name=name,
            qualified_name=qualname,
            kind=kind,
            scope_id=scope.id,
            location=Location(
                file=self.file_path,
                line=node.start_point[0] + 1,
                column=node.start_point[1],
                end_line=node.end_point[0] + 1,
                end_column=node.end_point[1],
            ),
            start_line=outer.start_point[0] + 1,
            decorators=decorators_of(decorated),
            exported=scope.kind == ScopeKind.MODULE and name in exports,
            is_dunder=is_dunder(name),
        ))

        draft = _ScopeDraft(id=symbol_id, kind=scope_kind, parent_id=scope.id, owner_id=symbol_id)
        if scope_kind == ScopeKind.FUNCTION:
            draft.bindings.update(parameter_names(node.child_by_field_name('parameters')))
        self._scopes[symbol_id] = draft
        scope.children.append(symbol_id)
        return symbol_id, qualname

    def _record_bindings(self, node: Node, scope: _ScopeDraft):
        """Record names a statement binds in the current scope."""
        node_type = node.type

        if node_type == 'assignment':
            left = node.child_by_field_name('left')
            names = target_names(left)
            scope.bindings.update(names)
            if scope.kind == ScopeKind.MODULE and left is not None and left.type == 'identifier':
                # Only assignments with a value define a module variable
                if node.child_by_field_name('right') is not None:
                    self._variables.append((names[0], left, node))
        elif node_type in ('augmented_assignment', 'for_statement', 'for_in_clause'):
            scope.bindings.update(target_names(node.child_by_field_name('left')))
        elif node_type == 'named_expression':
            scope.bindings.update(target_names(node.child_by_field_name('name')))
        elif node_type == 'as_pattern':
            scope.bindings.update(target_names(node.child_by_field_name('alias')))
        elif node_type == 'except_clause':
            # Older grammars: except E as name
            children = node.children
            for i, child in enumerate(children[:-1]):
                if child.type == 'as':
                    scope.bindings.update(target_names(children[i + 1]))
        elif node_type in ('import_statement', 'import_from_statement'):
            scope.bindings.update(import_aliases(node))
        elif node_type == 'global_statement':
            scope.globals.update(
                node_text(child) for child in node.named_children if child.type == 'identifier'
            )
        elif node_type == 'nonlocal_statement':
            scope.nonlocals.update(
                node_text(child) for child in node.named_children if child.type == 'identifier'
            )
        elif node_type == 'lambda':
            # Lambda parameters are not a scope of their own; they only shadow
            scope.bindings.update(parameter_names(node.child_by_field_name('parameters')))

    def _add_module_variables(self, module_id: str, exports: frozenset):
        """Turn recorded module-level assignments into MODULE_VARIABLE symbols.

        The first assignment of a name wins. Names that are also defined by a
        def/class at module level are rebindings, not variables.
        """
        defined = {s.name for s in self.symbols if s.scope_id == module_id}
        taken = {s.id for s in self.symbols}
        seen: Set[str] = set()

        for name, identifier, statement in self._variables:
            if name in seen or name in defined or name == '__all__':
                continue
            seen.add(name)

            symbol_id = f"{self.file_path}::{name}"
            if symbol_id in taken:
                symbol_id = f"{symbol_id}#var"

            # Report the span of the whole statement
            outer = statement.parent if statement.parent is not None and statement.parent.type == 'expression_statement' else statement
            self.symbols.append(Symbol(
                id=symbol_id,
                name=name,
                qualified_name=name,
                kind=SymbolKind.MODULE_VARIABLE,
                scope_id=module_id,
                location=Location(
                    file=self.file_path,
                    line=identifier.start_point[0] + 1,
                    column=identifier.start_point[1],
                    end_line=outer.end_point[0] + 1,
                    end_column=outer.end_point[1],
                ),
                start_line=identifier.start_point[0] + 1,
                exported=name in exports,
                is_dunder=is_dunder(name),
            ))
