"""Naming and syntax helpers shared by the per-file walkers.

The Symbol Table Builder and the Usage Collector walk the same tree
independently. Both name class/function scopes with ``ScopeNamer`` while
visiting definitions in document order, so a reference's scope id always
matches the scope the builder created for the same region.
"""
import re
from typing import Dict, List, Optional, Tuple

from tree_sitter import Node

from .models import module_scope_id
from .parser import is_error_node, node_text

DEFINITION_TYPES = ('function_definition', 'class_definition')

# Node types whose named children may all be assignment targets
_PATTERN_TYPES = {
    'pattern_list', 'tuple_pattern', 'list_pattern', 'tuple', 'list',
    'parenthesized_expression', 'list_splat_pattern', 'list_splat',
    'as_pattern_target',
}

_STRING_PREFIX = re.compile(r'^[rRbBuUfF]*')
IDENTIFIER_PATH = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$')


class ScopeNamer:
    """Assigns stable qualified ids to definitions of one file.

    ``a.py::Outer.inner`` for the first definition of ``Outer.inner``,
    ``a.py::Outer.inner#2`` for a redefinition of the same qualified name.
    """

    def __init__(self, file_path: str):
        self.file_path = file_path
        self._seen: Dict[str, int] = {}

    @property
    def module_scope(self) -> str:
        return module_scope_id(self.file_path)

    def definition_id(self, parent_qualname: str, name: str) -> Tuple[str, str]:
        """Return (id, qualified_name) for the next definition of ``name``."""
        qualified_name = f"{parent_qualname}.{name}" if parent_qualname else name
        count = self._seen.get(qualified_name, 0) + 1
        self._seen[qualified_name] = count
        base = f"{self.file_path}::{qualified_name}"
        return (base if count == 1 else f"{base}#{count}"), qualified_name


def definition_name(node: Node) -> Optional[str]:
    """Name of a function/class definition, or None if the parser lost it."""
    name_node = node.child_by_field_name('name')
    if name_node is None or is_error_node(name_node) or name_node.type != 'identifier':
        return None
    return node_text(name_node) or None


def decorators_of(decorated: Optional[Node]) -> Tuple[str, ...]:
    """Raw decorator texts of a decorated_definition, in source order."""
    if decorated is None:
        return ()
    return tuple(
        node_text(child).strip()
        for child in decorated.children
        if child.type == 'decorator'
    )


def target_names(node: Optional[Node]) -> List[str]:
    """Names bound by an assignment-like target (``a``, ``a, (b, *c)``).

    Attribute and subscript targets bind nothing.
    """
    if node is None or is_error_node(node):
        return []
    if node.type == 'identifier':
        return [node_text(node)]
    if node.type == 'as_pattern_target' and not node.named_children:
        text = node_text(node)
        return [text] if text.isidentifier() else []
    if node.type in _PATTERN_TYPES:
        names: List[str] = []
        for child in node.named_children:
            names.extend(target_names(child))
        return names
    return []


def parameter_names(parameters: Optional[Node]) -> List[str]:
    """Names bound by a ``parameters``/``lambda_parameters`` node."""
    if parameters is None:
        return []
    names: List[str] = []
    for param in parameters.named_children:
        name_node = parameter_name_node(param)
        if name_node is not None:
            names.append(node_text(name_node))
    return names


def parameter_name_node(param: Node) -> Optional[Node]:
    """The identifier a single parameter binds, if any."""
    if param.type == 'identifier':
        return param
    if param.type in ('default_parameter', 'typed_default_parameter'):
        name = param.child_by_field_name('name')
        return name if name is not None and name.type == 'identifier' else None
    if param.type in ('typed_parameter', 'list_splat_pattern', 'dictionary_splat_pattern'):
        for child in param.named_children:
            if child.type == 'identifier':
                return child
            if child.type in ('list_splat_pattern', 'dictionary_splat_pattern'):
                return parameter_name_node(child)
    return None


def import_aliases(node: Node) -> List[str]:
    """Local names bound by an import statement."""
    names: List[str] = []
    for child in node.children_by_field_name('name'):
        if child.type == 'aliased_import':
            alias = child.child_by_field_name('alias')
            if alias is not None:
                names.append(node_text(alias))
        elif child.type == 'dotted_name':
            text = node_text(child)
            if node.type == 'import_statement':
                # import a.b.c binds "a"
                names.append(text.split('.')[0])
            else:
                names.append(text.split('.')[-1])
    return names


def string_value(node: Node) -> Optional[str]:
    """Literal content of a plain string node; None for f-strings."""
    if node.type != 'string':
        return None
    children = node.children
    if any(child.type == 'interpolation' for child in children):
        return None
    if any(child.type == 'string_start' for child in children):
        return ''.join(node_text(child) for child in children if child.type == 'string_content')

    # Older grammars expose the whole literal as one token
    text = _STRING_PREFIX.sub('', node_text(node))
    for quote in ('"""', "'''", '"', "'"):
        if text.startswith(quote) and text.endswith(quote) and len(text) >= 2 * len(quote):
            return text[len(quote):-len(quote)]
    return None


def is_identifier_path(text: str) -> bool:
    """True for ``name`` or ``dotted.name`` strings."""
    return bool(IDENTIFIER_PATH.match(text))


def export_list(root: Node) -> frozenset:
    """Names listed in the module's ``__all__`` declaration(s).

    Understands ``__all__ = [...]``/``(...)``, ``__all__ += [...]`` and
    ``__all__.extend([...])``/``__all__.append("x")`` at module level.
    """
    names: List[str] = []
    for statement in _module_statements(root):
        if statement.type != 'expression_statement' or not statement.named_children:
            continue
        expr = statement.named_children[0]
        if expr.type in ('assignment', 'augmented_assignment'):
            left = expr.child_by_field_name('left')
            if left is not None and left.type == 'identifier' and node_text(left) == '__all__':
                names.extend(_string_items(expr.child_by_field_name('right')))
        elif expr.type == 'call':
            func = expr.child_by_field_name('function')
            if func is not None and func.type == 'attribute':
                obj = func.child_by_field_name('object')
                attr = func.child_by_field_name('attribute')
                if node_text(obj) == '__all__' and node_text(attr) in ('extend', 'append'):
                    args = expr.child_by_field_name('arguments')
                    if args is not None:
                        for arg in args.named_children:
                            names.extend(_string_items(arg))
    return frozenset(names)


def is_all_declaration(node: Node) -> bool:
    """True for the assignment/call node that declares ``__all__``."""
    if node.type in ('assignment', 'augmented_assignment'):
        left = node.child_by_field_name('left')
        return left is not None and node_text(left) == '__all__'
    if node.type == 'call':
        func = node.child_by_field_name('function')
        if func is not None and func.type == 'attribute':
            return node_text(func.child_by_field_name('object')) == '__all__'
    return False


def _module_statements(root: Node):
    """Module-level statements, looking inside module-level if/try blocks."""
    stack = list(reversed(root.named_children))
    while stack:
        node = stack.pop()
        if is_error_node(node):
            continue
        if node.type in ('if_statement', 'try_statement', 'else_clause', 'elif_clause',
                         'except_clause', 'finally_clause', 'block'):
            stack.extend(reversed(node.named_children))
            continue
        yield node


def _string_items(node: Optional[Node]) -> List[str]:
    if node is None:
        return []
    if node.type == 'string':
        value = string_value(node)
        return [value] if value else []
    if node.type in ('list', 'tuple', 'parenthesized_expression'):
        items: List[str] = []
        for child in node.named_children:
            items.extend(_string_items(child))
        return items
    return []
