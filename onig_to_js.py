"""
Onigmo to JavaScript Regex Converter

Converts a parsed Ruby (Onigmo) regular expression tree into ECMAScript
RegExp source, as it would appear between the slashes of a /.../ literal.
Constructs without a JavaScript equivalent are passed through unchanged
and reported as diagnostics instead of aborting the conversion.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# =============================================================================
# AST Node Types
# =============================================================================

class NodeType(str, Enum):
    """Coarse node category; selects the converter responsible for a node."""
    EXPRESSION = "expression"  # root or sequence of child nodes
    ANCHOR = "anchor"
    SET = "set"
    GROUP = "group"
    QUANTIFIER = "quantifier"
    ESCAPE = "escape"
    LITERAL = "literal"


class EscapeType(str, Enum):
    """Escape subtypes emitted by the source parser."""
    BACKSLASH = "backslash"                  # \\
    BEGINNING_OF_LINE = "beginning_of_line"  # \^
    CARRIAGE_RETURN = "carriage_return"      # \r
    CODEPOINT = "codepoint"                  # \u263A
    DOT = "dot"                              # \.
    END_OF_LINE = "end_of_line"              # \$
    FORM_FEED = "form_feed"                  # \f
    HEX = "hex"                              # \x41
    INTERVAL_OPEN = "interval_open"          # \{
    INTERVAL_CLOSE = "interval_close"        # \}
    NEWLINE = "newline"                      # \n
    OCTAL = "octal"                          # \101
    ONE_OR_MORE = "one_or_more"              # \+
    SET_OPEN = "set_open"                    # \[
    SET_CLOSE = "set_close"                  # \]
    TAB = "tab"                              # \t
    VERTICAL_TAB = "vertical_tab"            # \v
    ZERO_OR_MORE = "zero_or_more"            # \*
    ZERO_OR_ONE = "zero_or_one"              # \?
    LITERAL = "literal"                      # data is the escaped character itself
    BACKSPACE = "backspace"                  # \b inside a set
    BELL = "bell"                            # \a
    ESCAPE = "escape"                        # \e
    HEX_WIDE = "hex_wide"                    # \x{263A}
    CONTROL = "control"                      # \cA, \C-A
    META = "meta"                            # \M-a
    META_CONTROL = "meta_control"            # \M-\C-a


def _name(kind) -> str:
    """Plain string for a NodeType/EscapeType member or a raw subtype string."""
    return kind.value if isinstance(kind, Enum) else str(kind)


@dataclass(frozen=True)
class Node:
    """A single element of the parsed source tree. Never mutated."""
    type: NodeType
    subtype: str
    data: str = ""
    children: Tuple["Node", ...] = ()
    start: Optional[int] = None  # offset of data in the source pattern

    def __repr__(self):
        kind = _name(self.type)
        if self.children:
            return f"{kind}:{_name(self.subtype)}({list(self.children)})"
        return f"{kind}:{_name(self.subtype)}({self.data!r})"


def node_from_dict(raw: dict) -> Node:
    """Build a Node tree from a plain mapping (e.g. a YAML dump of parser output).

    Raises ValueError if a node names a type this converter does not know.
    """
    try:
        node_type = NodeType(raw["type"])
    except ValueError:
        raise ValueError(f"Unknown node type {raw['type']!r}") from None
    data = raw.get("data")
    return Node(
        type=node_type,
        subtype=str(raw.get("subtype", node_type.value)),
        data="" if data is None else str(data),
        children=tuple(node_from_dict(c) for c in raw.get("children") or ()),
        start=raw.get("start"),
    )


# =============================================================================
# Diagnostics
# =============================================================================

@dataclass(frozen=True)
class Diagnostic:
    """One construct that could not be faithfully translated."""
    subtype: str
    data: str
    start: Optional[int]
    message: str

    def __str__(self):
        return self.message


class UnsupportedNodeTypeError(ValueError):
    """No converter is registered for the type of a node."""

    def __init__(self, node_type):
        self.node_type = node_type
        kind = _name(node_type)
        super().__init__(f"No converter registered for node type {kind!r}")


@dataclass
class ConversionContext:
    """Per-run state shared by all converters of one conversion.

    A context belongs to exactly one run; trees may be shared between
    runs, contexts may not.
    """
    unicode: bool = False  # the target RegExp will carry the `u` flag
    output: List[str] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def emit(self, token: str):
        self.output.append(token)

    def warn(self, node: Node, message: str):
        """Record a diagnostic for node. Diagnostics are only ever appended."""
        self.diagnostics.append(Diagnostic(_name(node.subtype), node.data, node.start, message))
        logger.debug("diagnostic: %s", message)

    @property
    def pattern(self) -> str:
        return "".join(self.output)


@dataclass(frozen=True)
class ConversionResult:
    """Best-effort pattern plus every point where it diverges from the source."""
    pattern: str
    diagnostics: Tuple[Diagnostic, ...] = ()


# =============================================================================
# Converters
# =============================================================================

class Converter:
    """Converts one node type to target pattern text."""

    def convert(self, node: Node, context: ConversionContext) -> str:
        raise NotImplementedError

    def pass_through(self, node: Node) -> str:
        return node.data

    def warn_of_unsupported_feature(self, node: Node, context: ConversionContext,
                                    description: str) -> str:
        """Report node as unsupported and fall back to its source text."""
        location = f" at index {node.start}" if node.start is not None else ""
        context.warn(node, f"Unsupported {description} '{node.data}'{location} "
                           f"has no JavaScript equivalent; passed through unchanged")
        return self.pass_through(node)


class LiteralConverter(Converter):
    """Escapes literal text so it matches itself in a JavaScript pattern."""

    # ES syntax characters, plus the slash delimiting a regex literal
    SYNTAX_CHARS = frozenset("\\^$.|?*+()[]{}/")
    CONTROL_ESCAPES = {
        '\t': '\\t',
        '\n': '\\n',
        '\v': '\\v',
        '\f': '\\f',
        '\r': '\\r',
        # line terminators; raw, they end a /.../ literal
        '\u2028': '\\u2028',
        '\u2029': '\\u2029',
    }

    def convert(self, node: Node, context: ConversionContext) -> str:
        return self.convert_data(node.data, context)

    def convert_data(self, data: str, context: ConversionContext) -> str:
        """Escape every character of data. Total; never records diagnostics."""
        return "".join(self._escape_char(c, context.unicode) for c in data)

    def _escape_char(self, c: str, unicode: bool) -> str:
        if c in self.SYNTAX_CHARS:
            return f"\\{c}"
        if c in self.CONTROL_ESCAPES:
            return self.CONTROL_ESCAPES[c]
        if ord(c) > 0xFFFF and not unicode:
            return self._surrogate_pair(c)
        return c

    def _surrogate_pair(self, c: str) -> str:
        """Astral character as a grouped UTF-16 surrogate pair.

        Without the `u` flag JavaScript matches code units, so the pair is
        grouped to keep a following quantifier applying to the whole
        character.
        """
        offset = ord(c) - 0x10000
        high = 0xD800 + (offset >> 10)
        low = 0xDC00 + (offset & 0x3FF)
        return f"(?:\\u{high:04X}\\u{low:04X})"


class EscapeHandling(Enum):
    PASS_THROUGH = "pass_through"
    LITERAL = "literal"
    UNSUPPORTED = "unsupported"


ESCAPE_HANDLING: Dict[EscapeType, EscapeHandling] = {
    # Same syntax and meaning in JavaScript
    EscapeType.BACKSLASH: EscapeHandling.PASS_THROUGH,
    EscapeType.BEGINNING_OF_LINE: EscapeHandling.PASS_THROUGH,
    EscapeType.CARRIAGE_RETURN: EscapeHandling.PASS_THROUGH,
    EscapeType.CODEPOINT: EscapeHandling.PASS_THROUGH,
    EscapeType.DOT: EscapeHandling.PASS_THROUGH,
    EscapeType.END_OF_LINE: EscapeHandling.PASS_THROUGH,
    EscapeType.FORM_FEED: EscapeHandling.PASS_THROUGH,
    EscapeType.HEX: EscapeHandling.PASS_THROUGH,
    EscapeType.INTERVAL_OPEN: EscapeHandling.PASS_THROUGH,
    EscapeType.INTERVAL_CLOSE: EscapeHandling.PASS_THROUGH,
    EscapeType.NEWLINE: EscapeHandling.PASS_THROUGH,
    EscapeType.OCTAL: EscapeHandling.PASS_THROUGH,
    EscapeType.ONE_OR_MORE: EscapeHandling.PASS_THROUGH,
    EscapeType.SET_OPEN: EscapeHandling.PASS_THROUGH,
    EscapeType.SET_CLOSE: EscapeHandling.PASS_THROUGH,
    EscapeType.TAB: EscapeHandling.PASS_THROUGH,
    EscapeType.VERTICAL_TAB: EscapeHandling.PASS_THROUGH,
    EscapeType.ZERO_OR_MORE: EscapeHandling.PASS_THROUGH,
    EscapeType.ZERO_OR_ONE: EscapeHandling.PASS_THROUGH,

    EscapeType.LITERAL: EscapeHandling.LITERAL,

    EscapeType.BACKSPACE: EscapeHandling.UNSUPPORTED,
    EscapeType.BELL: EscapeHandling.UNSUPPORTED,
    EscapeType.ESCAPE: EscapeHandling.UNSUPPORTED,
    EscapeType.HEX_WIDE: EscapeHandling.UNSUPPORTED,
    EscapeType.CONTROL: EscapeHandling.UNSUPPORTED,
    EscapeType.META: EscapeHandling.UNSUPPORTED,
    EscapeType.META_CONTROL: EscapeHandling.UNSUPPORTED,
}

_unclassified = [t.name for t in EscapeType if t not in ESCAPE_HANDLING]
if _unclassified:
    raise RuntimeError(f"Escape types without a handling: {', '.join(_unclassified)}")


def escape_handling(subtype: str) -> EscapeHandling:
    """Classify an escape subtype. Subtypes EscapeType does not know are unsupported."""
    try:
        escape_type = EscapeType(subtype)
    except ValueError:
        return EscapeHandling.UNSUPPORTED
    return ESCAPE_HANDLING[escape_type]


class EscapeConverter(Converter):
    """Converts escape nodes, delegating escaped literals to a LiteralConverter."""

    def __init__(self, literal_converter: LiteralConverter):
        self.literal_converter = literal_converter

    def convert(self, node: Node, context: ConversionContext) -> str:
        handling = escape_handling(node.subtype)
        if handling is EscapeHandling.PASS_THROUGH:
            return self.pass_through(node)
        if handling is EscapeHandling.LITERAL:
            return self.literal_converter.convert_data(node.data, context)
        # Backspace, Bell, HexWide, Control, Meta, MetaControl, ...
        return self.warn_of_unsupported_feature(node, context, f"escape {_name(node.subtype)}")


class SubexpressionConverter(Converter):
    """Concatenates the conversions of a node's children, left to right."""

    def convert(self, node: Node, context: ConversionContext) -> str:
        return "".join(convert_node(child, context) for child in node.children)


# =============================================================================
# Registry
# =============================================================================

_literal_converter = LiteralConverter()

CONVERTERS: Dict[NodeType, Converter] = {
    NodeType.EXPRESSION: SubexpressionConverter(),
    NodeType.ESCAPE: EscapeConverter(_literal_converter),
    NodeType.LITERAL: _literal_converter,
}


def convert_node(node: Node, context: ConversionContext) -> str:
    """Convert node with the converter registered for its type.

    Leaf tokens are also emitted to the context, so its output holds them
    in pre-order, left to right.
    """
    converter = CONVERTERS.get(node.type)
    if converter is None:
        raise UnsupportedNodeTypeError(node.type)
    token = converter.convert(node, context)
    if not node.children:
        context.emit(token)
    return token


def convert_tree(root: Node, unicode: bool = False) -> ConversionResult:
    """Convert a whole tree in a fresh context.

    Unsupported constructs do not raise; they appear in the returned
    diagnostics and it is up to the caller whether to reject the result.
    """
    context = ConversionContext(unicode=unicode)
    convert_node(root, context)
    if context.diagnostics:
        logger.debug("converted %r with %d diagnostic(s)", root, len(context.diagnostics))
    return ConversionResult(context.pattern, tuple(context.diagnostics))
