"""Tree-sitter parser for Python compilation units."""
from pathlib import Path

from tree_sitter import Language, Parser, Tree
import tree_sitter_python as tspython


PYTHON_LANGUAGE = Language(tspython.language())


class PythonParser:
    """Python parser using the tree-sitter v0.22+ API.

    Parser objects are not shared between threads; each worker builds its own.
    """

    def __init__(self):
        self.parser = Parser(PYTHON_LANGUAGE)

    def parse_source(self, source_code: bytes) -> Tree:
        return self.parser.parse(source_code)

    def parse_file(self, file_path: str | Path) -> tuple[Tree, bytes]:
        """Parse a file and return its tree with the source bytes.

        Args:
            file_path: Path to source file to parse

        Returns:
            Tuple of (tree, source bytes)

        Raises:
            OSError: If the file cannot be read
        """
        with open(file_path, 'rb') as f:
            source_code = f.read()
        return self.parser.parse(source_code), source_code


def syntax_error_line(tree: Tree) -> int | None:
    """First line (1-based) holding a parse error, or None for a clean tree."""
    if not tree.root_node.has_error:
        return None

    stack = [tree.root_node]
    while stack:
        node = stack.pop()
        if node.type == 'ERROR' or node.is_missing:
            return node.start_point[0] + 1
        stack.extend(reversed([child for child in node.children if child.has_error or child.is_missing]))
    return tree.root_node.start_point[0] + 1
