"""Selector resolution.

Rewrites locator shorthand into canonical queries:

- ``name="x"``  -> ``[name="x"]``
- ``id="x"``    -> ``[id="x"]``
- ``class="a b"`` -> ``.a.b`` (each class escaped)
- ``attr="v"``  -> ``[attr="v"]`` for any other attribute name

Strings starting with ``/``, ``./`` or ``(`` are XPath and pass through.
Anything else is treated as CSS and returned unchanged.
"""

import re

from pagepilot.core.protocols import Selector, SelectorKind

_PATH_PREFIXES = ("/", "./", "(")

_NAME_RE = re.compile(r"""^name\s*=\s*["']([^"']*)["']$""", re.IGNORECASE)
_ID_RE = re.compile(r"""^id\s*=\s*["']([^"']*)["']$""", re.IGNORECASE)
_CLASS_RE = re.compile(r"""^class\s*=\s*["']([^"']*)["']$""", re.IGNORECASE)
_ATTR_RE = re.compile(r"""^([\w-]+)\s*=\s*["']([^"']*)["']$""")
_CLASS_SPECIALS_RE = re.compile(r"""([\\!"#$%&'()*+,./:;<=>?@\[\]^`{|}~])""")


def is_path_based(selector: str) -> bool:
    """True if the selector is XPath (``//button``, ``/html/body``, ``(//div)[1]``, ``./a``)."""
    if not isinstance(selector, str):
        return False
    return selector.strip().startswith(_PATH_PREFIXES)


def escape_class(name: str) -> str:
    """Escape a class name for use after ``.`` in a CSS selector."""
    return _CLASS_SPECIALS_RE.sub(r"\\\1", name)


def canonicalize(locator: str) -> str:
    """Return the canonical query string for a locator."""
    trimmed = locator.strip()
    if is_path_based(trimmed):
        return trimmed

    match = _NAME_RE.match(trimmed)
    if match:
        return f'[name="{match.group(1)}"]'

    match = _ID_RE.match(trimmed)
    if match:
        return f'[id="{match.group(1)}"]'

    match = _CLASS_RE.match(trimmed)
    if match:
        classes = match.group(1).split()
        return "".join(f".{escape_class(c)}" for c in classes)

    match = _ATTR_RE.match(trimmed)
    if match:
        return f'[{match.group(1)}="{match.group(2)}"]'

    return trimmed


def resolve(raw: str) -> Selector:
    """Resolve a caller-authored selector.

    Args:
        raw: CSS, XPath, or ``attr="value"`` shorthand.

    Returns:
        The immutable Selector with canonical query and kind.

    Raises:
        TypeError: If ``raw`` is not a string.
    """
    if not isinstance(raw, str):
        raise TypeError(
            f"Selector must be a string (e.g. '#id', '.class', 'button'). "
            f"Got {type(raw).__name__}. For drag_to(), pass a selector string: "
            "locator('#source').drag_to('#target'), not a locator object."
        )
    kind = SelectorKind.PATH if is_path_based(raw) else SelectorKind.STRUCTURAL
    return Selector(raw=raw, canonical=canonicalize(raw), kind=kind)


def attribute_selector(attribute: str, value: str) -> str:
    """Build an attribute-equality CSS selector, quoting the value."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'[{attribute}="{escaped}"]'
