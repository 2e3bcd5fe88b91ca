"""Usage collection: every place a file reads, calls or imports a name."""
import logging
import re
from typing import List, Optional, Tuple

from tree_sitter import Node, Tree

from .models import Location, Reference, ReferenceKind
from .parser import is_error_node, node_text
from .scoping import (
    DEFINITION_TYPES, ScopeNamer, definition_name, is_all_declaration,
    is_identifier_path, string_value,
)

logger = logging.getLogger(__name__)

# Dotted identifiers inside a string annotation such as "Optional[models.User]"
_ANNOTATION_NAME = re.compile(r'[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*')

# Statements whose names never refer to project symbols
_SKIPPED_TYPES = {
    'global_statement', 'nonlocal_statement', 'future_import_statement',
    'dotted_name', 'comment', 'type_parameter',
}


class UsageCollector:
    """Collect the references made by one file.

    Scope ids are assigned with the same ``ScopeNamer`` walk as the Symbol
    Table Builder, so both sides agree without sharing any state.

    Decorators, default values, annotations and base classes belong to the
    scope that *contains* the definition; only bodies are visited in the new
    scope.
    """

    def __init__(self, file_path: str):
        self.file_path = str(file_path)
        self.namer = ScopeNamer(self.file_path)
        self.references: List[Reference] = []
        self._stack: List[Tuple[Node, str, str, bool]] = []

    def collect(self, tree: Tree) -> List[Reference]:
        """Walk the tree and return references in traversal order."""
        module_id = self.namer.module_scope
        self._stack = [(tree.root_node, module_id, '', False)]

        while self._stack:
            node, scope_id, prefix, annotation = self._stack.pop()
            if is_error_node(node) or node.type in _SKIPPED_TYPES:
                continue
            self._visit(node, scope_id, prefix, annotation)

        logger.debug("%s: %d references", self.file_path, len(self.references))
        return self.references

    def _push(self, node: Optional[Node], scope_id: str, prefix: str, annotation: bool = False):
        if node is not None:
            self._stack.append((node, scope_id, prefix, annotation))

    def _push_children(self, node: Node, scope_id: str, prefix: str, annotation: bool = False):
        for child in reversed(node.children):
            self._stack.append((child, scope_id, prefix, annotation))

    def _visit(self, node: Node, scope_id: str, prefix: str, annotation: bool):
        node_type = node.type

        if node_type == 'identifier':
            self._add(node, node_text(node), ReferenceKind.NAME_LOAD, scope_id, (node_text(node),))
        elif node_type == 'decorated_definition':
            definition = node.child_by_field_name('definition')
            self._push(definition, scope_id, prefix)
            for child in reversed(node.children):
                if child.type == 'decorator':
                    self._push_children(child, scope_id, prefix)
        elif node_type in DEFINITION_TYPES:
            self._visit_definition(node, scope_id, prefix)
        elif node_type == 'call':
            if is_all_declaration(node):
                return
            self._visit_call(node, scope_id, prefix, annotation)
        elif node_type == 'attribute':
            self._visit_attribute(node, scope_id, prefix, annotation, ReferenceKind.ATTRIBUTE_ACCESS)
        elif node_type in ('import_statement', 'import_from_statement'):
            self._visit_import(node, scope_id)
        elif node_type == 'string':
            self._visit_string(node, scope_id, prefix, annotation)
        elif node_type == 'keyword_argument':
            self._push(node.child_by_field_name('value'), scope_id, prefix, annotation)
        elif node_type == 'assignment':
            if is_all_declaration(node):
                return
            self._push(node.child_by_field_name('right'), scope_id, prefix)
            self._push(node.child_by_field_name('type'), scope_id, prefix, True)
            self._visit_target(node.child_by_field_name('left'), scope_id, prefix)
        elif node_type == 'augmented_assignment':
            if is_all_declaration(node):
                return
            # x += 1 reads x as well
            self._push_children(node, scope_id, prefix)
        elif node_type in ('for_statement', 'for_in_clause'):
            left = node.child_by_field_name('left')
            for child in reversed(node.children):
                if child == left:
                    self._visit_target(child, scope_id, prefix)
                else:
                    self._push(child, scope_id, prefix, annotation)
        elif node_type == 'named_expression':
            self._push(node.child_by_field_name('value'), scope_id, prefix, annotation)
        elif node_type == 'as_pattern':
            alias = node.child_by_field_name('alias')
            for child in reversed(node.children):
                if child == alias:
                    self._visit_target(child, scope_id, prefix)
                else:
                    self._push(child, scope_id, prefix, annotation)
        elif node_type == 'except_clause':
            self._visit_except(node, scope_id, prefix)
        elif node_type == 'lambda':
            self._visit_parameters(node.child_by_field_name('parameters'), scope_id, prefix)
            self._push(node.child_by_field_name('body'), scope_id, prefix)
        elif node_type == 'type':
            self._push_children(node, scope_id, prefix, True)
        elif node_type == 'expression_statement' and _is_bare_string(node):
            # Docstrings and other bare string statements
            return
        else:
            self._push_children(node, scope_id, prefix, annotation)

    def _visit_definition(self, node: Node, scope_id: str, prefix: str):
        name = definition_name(node)
        if name is None:
            return
        child_id, qualname = self.namer.definition_id(prefix, name)

        # Pushed in reverse: signature parts in the enclosing scope come first
        self._push(node.child_by_field_name('body'), child_id, qualname)
        if node.type == 'class_definition':
            self._push(node.child_by_field_name('superclasses'), scope_id, prefix)
        else:
            self._push(node.child_by_field_name('return_type'), scope_id, prefix, True)
            self._visit_parameters(node.child_by_field_name('parameters'), scope_id, prefix)

    def _visit_parameters(self, parameters: Optional[Node], scope_id: str, prefix: str):
        """Push default values and annotations; parameter names are not references."""
        if parameters is None:
            return
        for param in reversed(parameters.named_children):
            if param.type in ('default_parameter', 'typed_default_parameter'):
                self._push(param.child_by_field_name('value'), scope_id, prefix)
            if param.type in ('typed_parameter', 'typed_default_parameter'):
                self._push(param.child_by_field_name('type'), scope_id, prefix, True)

    def _visit_target(self, target: Optional[Node], scope_id: str, prefix: str):
        """Assignment targets: bound names are skipped, receivers and subscripts are read."""
        if target is None or is_error_node(target):
            return
        if target.type == 'identifier':
            return
        if target.type == 'attribute':
            self._visit_attribute(target, scope_id, prefix, False, None)
        elif target.type in ('pattern_list', 'tuple_pattern', 'list_pattern', 'tuple', 'list',
                             'parenthesized_expression', 'list_splat_pattern', 'list_splat',
                             'as_pattern_target'):
            for child in target.named_children:
                self._visit_target(child, scope_id, prefix)
        else:
            self._push(target, scope_id, prefix)

    def _visit_except(self, node: Node, scope_id: str, prefix: str):
        children = node.children
        bound = None
        for i, child in enumerate(children[:-1]):
            if child.type == 'as':
                bound = children[i + 1]
        for child in reversed(children):
            if child == bound:
                self._visit_target(child, scope_id, prefix)
            else:
                self._push(child, scope_id, prefix)

    def _visit_call(self, node: Node, scope_id: str, prefix: str, annotation: bool):
        self._push(node.child_by_field_name('arguments'), scope_id, prefix, annotation)
        func = node.child_by_field_name('function')
        if func is None or is_error_node(func):
            return
        if func.type == 'identifier':
            self._add(func, node_text(func), ReferenceKind.CALL, scope_id, (node_text(func),))
        elif func.type == 'attribute':
            self._visit_attribute(func, scope_id, prefix, annotation, ReferenceKind.CALL)
        else:
            self._push(func, scope_id, prefix, annotation)

    def _visit_attribute(self, node: Node, scope_id: str, prefix: str, annotation: bool,
                         last_kind: Optional[ReferenceKind]):
        """Record an attribute chain.

        For a plain chain ``a.b.c`` each prefix becomes its own reference:
        ``a`` as a name load, ``a.b`` as an attribute access, and ``a.b.c`` as
        ``last_kind``. ``last_kind`` is None for assignment targets, where
        only the receivers are read.
        """
        nodes = _chain_nodes(node)
        if nodes is not None:
            segments = tuple(_segment(n) for n in nodes)
            for i, chain_node in enumerate(nodes):
                if i == len(nodes) - 1:
                    if last_kind is None:
                        break
                    kind = last_kind
                elif i == 0:
                    kind = ReferenceKind.NAME_LOAD
                else:
                    kind = ReferenceKind.ATTRIBUTE_ACCESS
                self._add(chain_node, segments[i], kind, scope_id, segments[:i + 1])
            return

        # Receiver is an arbitrary expression: make().run(), items[0].name
        receiver = node.child_by_field_name('object')
        if receiver is not None and receiver.type == 'attribute':
            self._visit_attribute(receiver, scope_id, prefix, annotation, ReferenceKind.ATTRIBUTE_ACCESS)
        else:
            self._push(receiver, scope_id, prefix, annotation)

        attr = node.child_by_field_name('attribute')
        if last_kind is not None and attr is not None:
            name = node_text(attr)
            self._add(node, name, last_kind, scope_id, (name,), is_member=True)

    def _visit_import(self, node: Node, scope_id: str):
        if node.type == 'import_statement':
            for child in node.children_by_field_name('name'):
                dotted, alias = _import_name(child)
                if not dotted:
                    continue
                parts = tuple(dotted.split('.'))
                self._add(
                    child, parts[-1], ReferenceKind.IMPORT, scope_id, parts,
                    module=dotted, alias=alias or parts[0], is_module_import=True,
                )
            return

        module_node = node.child_by_field_name('module_name')
        module = node_text(module_node).replace(' ', '')
        if not module:
            return

        for child in node.children:
            if child.type == 'wildcard_import':
                self._add(child, '*', ReferenceKind.IMPORT, scope_id, ('*',),
                          module=module, is_wildcard=True)
                return

        for child in node.children_by_field_name('name'):
            dotted, alias = _import_name(child)
            if not dotted:
                continue
            name = dotted.split('.')[-1]
            self._add(child, name, ReferenceKind.IMPORT, scope_id, (name,),
                      module=module, alias=alias or name)

    def _visit_string(self, node: Node, scope_id: str, prefix: str, annotation: bool):
        if any(child.type == 'interpolation' for child in node.children):
            # f-string: only the embedded expressions are references
            self._push_children(node, scope_id, prefix, annotation)
            return

        value = string_value(node)
        if not value:
            return

        if annotation:
            # Forward reference: "User" or "Optional[models.User]"
            for match in _ANNOTATION_NAME.finditer(value):
                segments = tuple(match.group(0).split('.'))
                for i in range(len(segments)):
                    kind = ReferenceKind.NAME_LOAD if i == 0 else ReferenceKind.ATTRIBUTE_ACCESS
                    self._add(node, segments[i], kind, scope_id, segments[:i + 1])
            return

        if is_identifier_path(value):
            segments = tuple(value.split('.'))
            self._add(node, segments[-1], ReferenceKind.DYNAMIC_STRING_USE, scope_id, segments)

    def _add(self, node: Node, name: str, kind: ReferenceKind, scope_id: str,
             chain: Tuple[str, ...], is_member: Optional[bool] = None, **import_fields):
        if not name:
            return
        if is_member is None:
            is_member = kind != ReferenceKind.IMPORT and len(chain) > 1
        self.references.append(Reference(
            id=f"{self.file_path}#{len(self.references)}",
            name=name,
            kind=kind,
            scope_id=scope_id,
            location=Location(
                file=self.file_path,
                line=node.start_point[0] + 1,
                column=node.start_point[1],
                end_line=node.end_point[0] + 1,
                end_column=node.end_point[1],
            ),
            chain=chain,
            is_member=is_member,
            **import_fields,
        ))


def _chain_nodes(node: Node) -> Optional[List[Node]]:
    """Nodes of a plain ``a.b.c`` chain from head to ``node``; None otherwise."""
    nodes = []
    current = node
    while current is not None and current.type == 'attribute':
        nodes.append(current)
        current = current.child_by_field_name('object')
    if current is None or current.type != 'identifier':
        return None
    nodes.append(current)
    nodes.reverse()
    return nodes


def _segment(node: Node) -> str:
    if node.type == 'attribute':
        return node_text(node.child_by_field_name('attribute'))
    return node_text(node)


def _import_name(node: Node) -> Tuple[str, Optional[str]]:
    """(dotted name, alias) of one imported item."""
    if node.type == 'aliased_import':
        alias = node.child_by_field_name('alias')
        return node_text(node.child_by_field_name('name')), node_text(alias) or None
    if node.type == 'dotted_name':
        return node_text(node), None
    return '', None


def _is_bare_string(node: Node) -> bool:
    named = node.named_children
    return len(named) == 1 and named[0].type in ('string', 'concatenated_string')
