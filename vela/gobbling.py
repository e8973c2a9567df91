"""Space gobbling: deciding which whitespace around directives is dropped.

The syntax tree is flattened into a stream of atoms in source order:
whitespace and newline tokens, *content* (text, references, escapes) and
*markers* standing for one directive unit. Block markers are the pieces of
``#if``/``#foreach``/``#macro`` constructs (the opening directive with its
arguments, each ``#elseif``/``#else`` and the ``#end``); every other
directive is a line marker. The stream is then cut into lines and each
line is classified on its own, so a directive nested ten levels deep is
treated exactly like one at the top.

The result is the set of start offsets of the whitespace and newline tokens
to drop; the builder consults it while producing text nodes.
"""

import logging

from vela.lexer import BLOCK_COMMENT, LINE_COMMENT, NEWLINE, WS, Token
from vela.options import SpaceGobbling
from vela.parser import SyntaxNode

__all__ = ["plan", "lines"]

LOG = logging.getLogger(__name__)

SPACE = "space"
BREAK = "break"
CONTENT = "content"
BLOCK = "block"
LINE = "line"
NEUTRAL = "neutral"

BLOCK_RULES = ("if", "foreach", "macro")
LINE_RULES = ("set", "break", "stop", "evaluate", "parse", "include", "macro_call")


def atoms(node):
    """Yields ``(kind, item)`` pairs for a block's segments, recursively."""
    for child in node.children:
        if isinstance(child, Token):
            if child.kind == WS:
                yield SPACE, child
            elif child.kind in (NEWLINE, LINE_COMMENT):
                yield BREAK, child
            elif child.kind == BLOCK_COMMENT:
                yield NEUTRAL, child
            else:
                yield CONTENT, child
        elif child.rule in BLOCK_RULES:
            for atom in block_atoms(child):
                yield atom
        elif child.rule in LINE_RULES:
            yield LINE, child
        else:
            yield CONTENT, child


def block_atoms(node):
    # a marker runs from its keyword to the block that follows it
    for child in node.children:
        if isinstance(child, SyntaxNode) and child.rule == "block":
            for atom in atoms(child):
                yield atom
        elif isinstance(child, SyntaxNode) and child.rule in ("elseif", "else"):
            for atom in block_atoms(child):
                yield atom
        elif isinstance(child, Token) and child.text.startswith("#"):
            yield BLOCK, child


def lines(template):
    """Splits the atom stream of a parsed template into lines.

    Each line is a ``(atoms, terminator)`` pair; the terminator is the
    newline or line comment token ending it, or None on the last line.
    """
    current = []
    for kind, item in atoms(template.children[0]):
        if kind == BREAK:
            yield current, item
            current = []
        else:
            current.append((kind, item))
    yield current, None


def classify(line, terminator=None):
    """Returns the markers of a line and whether it holds nothing else.

    A line whose only non-blank item is a comment counts as one line marker.
    """
    if any(kind == CONTENT for kind, _ in line):
        return [], False
    markers = [kind for kind, _ in line if kind in (BLOCK, LINE)]
    if not markers and (
        any(kind == NEUTRAL for kind, _ in line)
        or (terminator is not None and terminator.kind == LINE_COMMENT)
    ):
        markers = [LINE]
    return markers, bool(markers)


def plan(template, mode=SpaceGobbling.DEFAULT):
    """Returns the start offsets of whitespace tokens suppressed in ``mode``."""
    mode = SpaceGobbling.normalize(mode)
    suppressed = set()
    if mode == SpaceGobbling.NONE:
        return frozenset(suppressed)
    for line, terminator in lines(template):
        markers, directive_only = classify(line, terminator)
        if not directive_only:
            continue
        if len(markers) > 1 and not (
            mode == SpaceGobbling.STRUCTURED and all(m == BLOCK for m in markers)
        ):
            continue
        newline = terminator if terminator is not None and terminator.kind == NEWLINE else None
        if mode == SpaceGobbling.BC:
            if newline is not None:
                suppressed.add(newline.start)
            continue
        suppressed.update(item.start for kind, item in line if kind == SPACE)
        if newline is not None:
            suppressed.add(newline.start)
    LOG.debug("space gobbling (%s) drops %d tokens", mode, len(suppressed))
    return frozenset(suppressed)
