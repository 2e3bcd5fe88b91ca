"""Tree-sitter parser for Python source analysis."""
import threading
from typing import Optional

import tree_sitter_python as tspython
from tree_sitter import Language, Node, Parser, Tree

from ..exceptions import ParseError

PY_LANGUAGE = Language(tspython.language())

_thread_state = threading.local()


class LanguageParser:
    """Python parser using the tree-sitter v0.23+ API.

    A tree-sitter Parser is not safe to share between threads; use
    ``thread_parser()`` to get one owned by the calling thread.
    """

    SUPPORTED_EXTENSIONS = {'.py', '.pyi'}

    def __init__(self):
        self.language = 'python'
        self.parser = Parser(PY_LANGUAGE)

    def parse_source(self, text: str, file_path: str = "<string>") -> Tree:
        """Parse file text into a concrete syntax tree.

        Trees with localized error nodes are returned as-is; callers skip the
        error subtrees. Only a file with nothing salvageable is rejected.

        Args:
            text: Source text of the file
            file_path: Path used in error messages

        Returns:
            Parsed Tree

        Raises:
            ParseError: If the text contains NUL bytes or no top-level
                statement survives error recovery
        """
        nul = text.find('\x00')
        if nul != -1:
            raise ParseError(file_path, text.count('\n', 0, nul) + 1, "source contains NUL bytes")

        tree = self.parser.parse(text.encode('utf-8'))
        root = tree.root_node

        if is_error_node(root):
            raise ParseError(file_path, first_error_line(root), "no valid syntax found")

        if root.has_error:
            statements = [child for child in root.named_children if child.type != 'comment']
            if all(is_error_node(child) for child in statements):
                raise ParseError(file_path, first_error_line(root), "no top-level statement could be recovered")

        return tree

    @classmethod
    def supports(cls, file_path: str) -> bool:
        """Check whether a path has a Python source extension."""
        lowered = str(file_path).lower()
        return any(lowered.endswith(ext) for ext in cls.SUPPORTED_EXTENSIONS)


def thread_parser() -> LanguageParser:
    """Return the LanguageParser owned by the current thread, creating it once."""
    parser = getattr(_thread_state, 'parser', None)
    if parser is None:
        parser = LanguageParser()
        _thread_state.parser = parser
    return parser


def is_error_node(node: Node) -> bool:
    """True for ERROR nodes and for tokens the parser had to invent."""
    return node.type == 'ERROR' or node.is_missing


def tree_has_errors(tree: Tree) -> bool:
    return tree.root_node.has_error


def first_error_line(node: Node) -> int:
    """1-based line of the first error or missing node under ``node``."""
    found = _find_first_error(node)
    if found is None:
        return node.start_point[0] + 1
    return found.start_point[0] + 1


def _find_first_error(node: Node) -> Optional[Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        if is_error_node(current):
            return current
        if current.has_error:
            stack.extend(reversed(current.children))
    return None


def node_text(node: Optional[Node]) -> str:
    """Decode a node's source text."""
    if node is None or node.text is None:
        return ""
    return node.text.decode('utf-8', errors='ignore')
