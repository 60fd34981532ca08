from __future__ import annotations

import logging
import math
import string
from typing import List

from .tree import Map, Node, Scalar, Seq

logger = logging.getLogger(__name__)

HEADER = "#cloud-config"
INDENT = 2

STYLES = ("indented", "compact")

_PLAIN_FIRST = frozenset(string.ascii_letters + "_/")
_PLAIN_REST = frozenset(string.ascii_letters + string.digits + " _./+=-")

# Words a YAML 1.1 reader resolves to bool/null. Compared case-insensitively.
_RESERVED_WORDS = frozenset(
    ["y", "yes", "n", "no", "true", "false", "on", "off", "null"]
)

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
}


def _needs_unicode_escape(ch: str) -> bool:
    o = ord(ch)
    if o < 0x20 or 0x7F <= o <= 0x9F:
        return True
    if 0xD800 <= o <= 0xDFFF:
        return True
    return o in (0x2028, 0x2029, 0xFEFF, 0xFFFE, 0xFFFF)


def quote_string(value: str) -> str:
    """Double-quote a string.

    The escapes used are valid in both JSON strings and YAML double-quoted
    scalars, so the same text re-parses under either reader.
    """

    out = ['"']
    for ch in value:
        esc = _ESCAPES.get(ch)
        if esc is not None:
            out.append(esc)
        elif _needs_unicode_escape(ch):
            out.append("\\u%04x" % ord(ch))
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def is_plain_safe(value: str) -> bool:
    if not value or value[0] not in _PLAIN_FIRST:
        return False
    if value.endswith(" "):
        return False
    if any(ch not in _PLAIN_REST for ch in value[1:]):
        return False
    return value.lower() not in _RESERVED_WORDS


def format_string(value: str) -> str:
    if is_plain_safe(value):
        return value
    return quote_string(value)


def format_float(value: float, *, style: str) -> str:
    if math.isnan(value) or math.isinf(value):
        if style == "compact":
            raise ValueError(f"Non-finite float cannot be rendered compactly: {value!r}")
        if math.isnan(value):
            return ".nan"
        return ".inf" if value > 0 else "-.inf"

    text = repr(value)
    if "e" in text:
        # YAML 1.1 floats need a '.' in the mantissa and a signed exponent.
        mantissa, exponent = text.split("e", 1)
        if "." not in mantissa:
            mantissa += ".0"
        if exponent[0] not in "+-":
            exponent = "+" + exponent
        return f"{mantissa}e{exponent}"
    if "." not in text:
        text += ".0"
    return text


def format_scalar(node: Scalar, *, style: str) -> str:
    v = node.value
    if v is None:
        return "null"
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, int):
        return str(v)
    if isinstance(v, float):
        return format_float(v, style=style)
    if isinstance(v, str):
        if style == "compact":
            return quote_string(v)
        return format_string(v)
    raise TypeError(f"Unsupported scalar value: {type(v).__name__}")


def _is_inline(node: Node) -> bool:
    if isinstance(node, Scalar):
        return True
    return len(node) == 0


def _inline(node: Node) -> str:
    if isinstance(node, Scalar):
        return format_scalar(node, style="indented")
    if isinstance(node, Seq):
        return "[]"
    if isinstance(node, Map):
        return "{}"
    raise TypeError(f"Not a tree node: {type(node).__name__}")


def _render_block(node: Node, indent: int) -> List[str]:
    pad = " " * indent
    lines: List[str] = []

    if isinstance(node, Map):
        for key, value in node.entries:
            k = format_string(key)
            if _is_inline(value):
                lines.append(f"{pad}{k}: {_inline(value)}")
            else:
                lines.append(f"{pad}{k}:")
                lines.extend(_render_block(value, indent + INDENT))
    elif isinstance(node, Seq):
        for item in node.items:
            if _is_inline(item):
                lines.append(f"{pad}- {_inline(item)}")
                continue
            # Composite item: first line shares the marker, the rest stay one
            # level deeper than the marker.
            child = _render_block(item, indent + INDENT)
            child[0] = f"{pad}- {child[0][indent + INDENT:]}"
            lines.extend(child)
    else:
        raise TypeError(f"Block rendering needs a composite node, got {type(node).__name__}")

    return lines


def _render_compact(node: Node) -> str:
    if isinstance(node, Scalar):
        return format_scalar(node, style="compact")
    if isinstance(node, Seq):
        return "[" + ",".join(_render_compact(n) for n in node.items) + "]"
    if isinstance(node, Map):
        return "{" + ",".join(f"{quote_string(k)}:{_render_compact(v)}" for k, v in node.entries) + "}"
    raise TypeError(f"Not a tree node: {type(node).__name__}")


def render(node: Node, *, style: str = "indented") -> str:
    """Render a document tree without header or trailing newline."""

    if style not in STYLES:
        raise ValueError(f"Unknown render style: {style} (expected one of {', '.join(STYLES)})")

    if style == "compact":
        return _render_compact(node)
    if _is_inline(node):
        return _inline(node)
    return "\n".join(_render_block(node, 0))


def render_document(node: Node, *, style: str = "indented") -> str:
    body = render(node, style=style)
    logger.debug("Rendered document (style=%s, %d bytes)", style, len(body))
    return f"{HEADER}\n{body}\n"
