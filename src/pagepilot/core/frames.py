"""Frame chain resolution.

A frame chain is the ordered list of iframe selectors from the top-level
document down to a nested same-origin document. The chain stores selectors,
never node handles: every script re-walks it at evaluation time, so it
stays valid across re-renders as long as each step still matches exactly
one frame element.

The fragments built here are JavaScript expressions that reference the
``__pp`` helper object the expression builder defines in every script.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from pagepilot.core.protocols import FrameUnreachable, Selector
from pagepilot.core.selectors import resolve

FrameChain = tuple[Selector, ...]

FRAME_NOT_ACCESSIBLE = "frame-not-accessible"

_TOP_LEVEL_SCOPE = "({ doc: document, frames: [] })"


def resolve_chain(raw_chain: Sequence[str]) -> FrameChain:
    """Resolve every iframe selector in a chain. Empty chain = top-level document."""
    return tuple(resolve(raw) for raw in raw_chain)


def document_scope(chain: FrameChain, tolerate_unready: bool = False) -> str:
    """Build an expression that walks the chain to the innermost document.

    The expression evaluates to ``{doc, frames}`` where ``frames`` are the
    iframe elements crossed on the way (outermost first). When a step
    matches zero or several elements, or its document is not accessible,
    it evaluates to a ``frame-not-accessible`` status object, or to
    ``null`` when ``tolerate_unready`` is set (used by polling waits).

    Args:
        chain: Resolved iframe selectors from root to target frame.
        tolerate_unready: Return null instead of an error status.

    Returns:
        JavaScript expression source.
    """
    if not chain:
        return _TOP_LEVEL_SCOPE

    steps = json.dumps([[step.canonical, step.is_path] for step in chain])
    if tolerate_unready:
        failure = "null"
    else:
        failure = (
            f"{{ status: '{FRAME_NOT_ACCESSIBLE}', frameIndex: i, count: hits.length }}"
        )
    return f"""(function () {{
    var doc = document, frames = [];
    var steps = {steps};
    for (var i = 0; i < steps.length; i++) {{
      var hits = __pp.query(doc, steps[i][0], steps[i][1]);
      var inner = null;
      if (hits.length === 1) {{
        try {{ inner = hits[0].contentDocument; }} catch (e) {{ inner = null; }}
      }}
      if (!inner) return {failure};
      frames.push(hits[0]);
      doc = inner;
    }}
    return {{ doc: doc, frames: frames }};
  }})()"""


def frame_failure(value: Mapping[str, Any], chain: FrameChain) -> FrameUnreachable:
    """Convert a ``frame-not-accessible`` status object into an outcome."""
    index = int(value.get("frameIndex", 0))
    index = min(max(index, 0), len(chain) - 1)
    return FrameUnreachable(
        frame_selector=chain[index],
        frame_index=index,
        count=int(value.get("count", 0)),
    )


def describe_chain(chain: FrameChain) -> str:
    """Human-readable chain, e.g. ``iframe#outer > iframe#inner``."""
    return " > ".join(step.raw for step in chain) or "top-level document"
