"""Tree-Sitter Parsing Layer."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from .errors import SourceSyntaxError

logger = logging.getLogger(__name__)


class ParserFactory(ABC):
    """Abstract factory for obtaining a language parser."""

    @abstractmethod
    def get_parser(self, language: str): ...


class TreeSitterParserFactory(ParserFactory):
    """Concrete factory that delegates to tree-sitter-language-pack."""

    def get_parser(self, language: str):
        import tree_sitter_language_pack as tslp

        return tslp.get_parser(language)


def _first_error(node):
    """Depth-first search for the first ERROR or MISSING node."""
    if node.type == "ERROR" or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            found = _first_error(child)
            if found is not None:
                return found
    return None


class Parser:
    """Parses source bytes and rejects trees that contain syntax errors."""

    def __init__(self, parser_factory: ParserFactory | None = None):
        self._factory = parser_factory or TreeSitterParserFactory()

    def parse(self, source: bytes, language: str, file_name: str = ""):
        """Return the tree-sitter tree for *source*.

        Raises:
            SourceSyntaxError: if the tree contains ERROR or MISSING nodes.
        """
        tree = self._factory.get_parser(language).parse(source)
        if tree.root_node.has_error:
            bad = _first_error(tree.root_node) or tree.root_node
            row, col = bad.start_point
            raise SourceSyntaxError(
                f"{file_name or '<source>'}:{row + 1}:{col + 1}: syntax error"
                f" near {source[bad.start_byte : bad.end_byte][:40]!r}"
            )
        logger.debug("Parsed %d bytes of %s", len(source), language)
        return tree
