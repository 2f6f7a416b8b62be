"""Expression builder.

Every DOM-facing operation runs as one self-contained script evaluated in
the page. The script resolves the frame chain, runs the selector query,
applies the cardinality policy, and only then runs the operation body on
the single picked element. It always returns a status object, never
throws for a missing or ambiguous element, so the caller gets a typed
outcome to branch on.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pagepilot.core.frames import (
    FRAME_NOT_ACCESSIBLE,
    FrameChain,
    document_scope,
    frame_failure,
)
from pagepilot.core.protocols import (
    Ambiguous,
    Cardinality,
    CardinalityKind,
    Found,
    NotFound,
    OutOfRange,
    QueryOutcome,
    Rejected,
    SelectOption,
    Selector,
)
from pagepilot.utils.exceptions import EvaluationError

FOUND = "found"
NOT_FOUND = "not-found"
AMBIGUOUS = "ambiguous"
OUT_OF_RANGE = "out-of-range"
NOT_SELECTABLE = "not-selectable"
NOT_CHECKABLE = "not-checkable"
OPTION_NOT_FOUND = "option-not-found"

REJECTIONS = (NOT_SELECTABLE, NOT_CHECKABLE, OPTION_NOT_FOUND)

# Shared helpers, bound as __pp inside every script.
PRELUDE = """var __pp = {
    query: function (doc, sel, path) {
      if (path) {
        var snap = doc.evaluate(sel, doc, null, 7, null);
        var out = [];
        for (var i = 0; i < snap.snapshotLength; i++) out.push(snap.snapshotItem(i));
        return out;
      }
      return Array.prototype.slice.call(doc.querySelectorAll(sel));
    },
    offset: function (frames) {
      var x = 0, y = 0;
      for (var i = 0; i < frames.length; i++) {
        var f = frames[i];
        var r = f.getBoundingClientRect();
        var cs = f.ownerDocument.defaultView.getComputedStyle(f);
        x += r.left + f.clientLeft + (parseFloat(cs.paddingLeft) || 0);
        y += r.top + f.clientTop + (parseFloat(cs.paddingTop) || 0);
      }
      return { x: x, y: y };
    },
    rect: function (el, scope) {
      var r = el.getBoundingClientRect();
      var o = __pp.offset(scope.frames);
      return { x: r.left + o.x, y: r.top + o.y, width: r.width, height: r.height };
    }
  };"""


@dataclass(frozen=True)
class Operation:
    """A script body run against the single resolved element.

    ``script`` is a JavaScript function expression ``function (el, scope)``
    returning ``{value: ...}`` on success or ``{error: reason, detail}``.
    """

    name: str
    script: str


MEASURE_RECT = Operation(
    "measure",
    """function (el, scope) {
    el.scrollIntoView({ block: 'center', inline: 'center' });
    return { value: __pp.rect(el, scope) };
  }""",
)

REMEASURE_RECT = Operation(
    "remeasure",
    """function (el, scope) {
    return { value: __pp.rect(el, scope) };
  }""",
)

READ_TEXT = Operation(
    "text",
    """function (el) {
    return { value: el.textContent == null ? '' : String(el.textContent) };
  }""",
)

IS_VISIBLE = Operation(
    "visible",
    """function (el) {
    var r = el.getBoundingClientRect();
    var st = el.ownerDocument.defaultView.getComputedStyle(el);
    return { value: r.width > 0 && r.height > 0 && st.display !== 'none'
      && st.visibility !== 'hidden' && parseFloat(st.opacity) !== 0 };
  }""",
)

IS_DISABLED = Operation(
    "disabled",
    """function (el) {
    return { value: el.disabled === true };
  }""",
)

IS_EDITABLE = Operation(
    "editable",
    """function (el) {
    var tag = el.tagName;
    if (tag === 'INPUT' || tag === 'TEXTAREA') return { value: !el.disabled && !el.readOnly };
    return { value: el.isContentEditable === true };
  }""",
)

IS_SELECTED = Operation(
    "selected",
    """function (el) {
    var tag = el.tagName, type = (el.type || '').toLowerCase();
    if (tag === 'INPUT' && (type === 'checkbox' || type === 'radio')) return { value: el.checked === true };
    if (tag === 'OPTION') return { value: el.selected === true };
    if (tag === 'SELECT') return { value: el.selectedIndex >= 0 };
    return { value: false };
  }""",
)


def read_attribute(name: str) -> Operation:
    """Read an attribute; ``value`` on form controls reads the live value."""
    return Operation(
        "attribute",
        f"""function (el) {{
    var name = {json.dumps(name)}, tag = el.tagName;
    var live = name === 'value' && (tag === 'INPUT' || tag === 'TEXTAREA' || tag === 'SELECT');
    var v = live ? el.value : el.getAttribute(name);
    return {{ value: v == null ? '' : String(v) }};
  }}""",
    )


def select_options(options: Sequence[SelectOption]) -> Operation:
    """Replace the selection of a <select> with the given options.

    Options match by visible label (trimmed), by value, or by position. All
    of them are resolved before anything changes, so a missing option
    leaves the control untouched. One ``input`` and one ``change`` event
    fire afterwards.
    """
    specs = json.dumps([option.to_dict() for option in options])
    return Operation(
        "select",
        f"""function (el) {{
    if (el.tagName !== 'SELECT') return {{ error: '{NOT_SELECTABLE}' }};
    var specs = {specs}, opts = el.options, picked = [];
    for (var s = 0; s < specs.length; s++) {{
      var spec = specs[s], hit = -1;
      for (var i = 0; i < opts.length && hit < 0; i++) {{
        var opt = opts[i];
        if ('label' in spec) {{ if (String(opt.label).trim() === String(spec.label).trim()) hit = i; }}
        else if ('value' in spec) {{ if (opt.value === String(spec.value)) hit = i; }}
        else if (i === spec.index) hit = i;
      }}
      if (hit < 0) return {{ error: '{OPTION_NOT_FOUND}', detail: JSON.stringify(spec) }};
      picked.push(hit);
    }}
    if (el.multiple) {{ for (var j = 0; j < opts.length; j++) opts[j].selected = false; }}
    for (var k = 0; k < picked.length; k++) opts[picked[k]].selected = true;
    var View = el.ownerDocument.defaultView;
    el.dispatchEvent(new View.Event('input', {{ bubbles: true }}));
    el.dispatchEvent(new View.Event('change', {{ bubbles: true }}));
    var values = [];
    for (var m = 0; m < opts.length; m++) if (opts[m].selected) values.push(opts[m].value);
    return {{ value: values }};
  }}""",
    )


def toggle_checked(checked: bool) -> Operation:
    """Check whether a checkbox/radio needs toggling and where to click it.

    Returns ``{changed: false}`` when already in the requested state, else
    scrolls the control into view and returns ``{changed: true, rect}``.
    """
    want = "true" if checked else "false"
    return Operation(
        "check" if checked else "uncheck",
        f"""function (el, scope) {{
    var type = (el.type || '').toLowerCase();
    if (el.tagName !== 'INPUT' || (type !== 'checkbox' && type !== 'radio')) return {{ error: '{NOT_CHECKABLE}' }};
    if (el.checked === {want}) return {{ value: {{ changed: false }} }};
    if (!{want} && type === 'radio') return {{ error: '{NOT_CHECKABLE}', detail: 'a radio button cannot be unchecked' }};
    el.scrollIntoView({{ block: 'center', inline: 'center' }});
    return {{ value: {{ changed: true, rect: __pp.rect(el, scope) }} }};
  }}""",
    )


def normalize_options(spec: Any) -> list[SelectOption]:
    """Turn the accepted select() argument shapes into SelectOption objects.

    A plain string selects by value, an int by position, a mapping with a
    single ``label``/``value``/``index`` key by that field.
    """
    if isinstance(spec, (list, tuple)):
        return [_to_option(item) for item in spec]
    return [_to_option(spec)]


def _to_option(item: Any) -> SelectOption:
    if isinstance(item, SelectOption):
        return item
    if isinstance(item, Mapping):
        unknown = set(item) - {"label", "value", "index"}
        if unknown:
            raise ValueError(f"Unknown select option keys: {sorted(unknown)}")
        return SelectOption(**item)
    if isinstance(item, bool):
        raise TypeError("Select option must be a string, int, mapping or SelectOption")
    if isinstance(item, str):
        return SelectOption(value=item)
    if isinstance(item, int):
        return SelectOption(index=item)
    raise TypeError(
        f"Select option must be a string, int, mapping or SelectOption, "
        f"got {type(item).__name__}"
    )


def _pick(cardinality: Cardinality) -> str:
    if cardinality.kind is CardinalityKind.NTH:
        return f"""var index = {cardinality.index};
    if (index < 0 || index >= count) return {{ status: '{OUT_OF_RANGE}', count: count, index: index }};"""
    not_found = f"if (count === 0) return {{ status: '{NOT_FOUND}', count: 0 }};"
    if cardinality.kind is CardinalityKind.STRICT:
        return f"""{not_found}
    if (count > 1) return {{ status: '{AMBIGUOUS}', count: count }};
    var index = 0;"""
    if cardinality.kind is CardinalityKind.LAST:
        return f"""{not_found}
    var index = count - 1;"""
    return f"""{not_found}
    var index = 0;"""


def build_query(
    selector: Selector,
    cardinality: Cardinality,
    operation: Operation,
    chain: FrameChain = (),
) -> str:
    """Build the script that resolves one element and runs ``operation`` on it.

    Args:
        selector: The resolved element selector.
        cardinality: How to pick among several matches.
        operation: The body to run on the picked element.
        chain: Frame chain scoping the query (empty = top-level document).

    Returns:
        JavaScript source evaluating to a status object.
    """
    return f"""(function () {{
  {PRELUDE}
  var scope = {document_scope(chain)};
  if (scope.status) return scope;
  var nodes = __pp.query(scope.doc, {json.dumps(selector.canonical)}, {_js_bool(selector.is_path)});
  var count = nodes.length;
  {_pick(cardinality)}
  var result = ({operation.script})(nodes[index], scope);
  if (result.error) return {{ status: result.error, detail: result.detail || null, count: count, index: index }};
  return {{ status: '{FOUND}', count: count, index: index, value: result.value }};
}})()"""


def build_presence(selector: Selector, chain: FrameChain = ()) -> str:
    """Build a script that reports whether ``selector`` matches anything yet.

    Missing or not-yet-loaded frames count as "not present" instead of an
    error, so waits keep polling while a page is still assembling.
    """
    return f"""(function () {{
  {PRELUDE}
  var scope = {document_scope(chain, tolerate_unready=True)};
  if (!scope) return {{ found: false, count: 0, frameReady: false }};
  var n = __pp.query(scope.doc, {json.dumps(selector.canonical)}, {_js_bool(selector.is_path)}).length;
  return {{ found: n > 0, count: n, frameReady: true }};
}})()"""


def build_frame_evaluate(expression: str, chain: FrameChain) -> str:
    """Build a script evaluating caller code in the innermost frame's window."""
    return f"""(async function () {{
  {PRELUDE}
  var scope = {document_scope(chain)};
  if (scope.status) return scope;
  var value = await scope.doc.defaultView.eval({json.dumps(expression)});
  return {{ status: '{FOUND}', value: value === undefined ? null : value }};
}})()"""


def build_frame_content(chain: FrameChain) -> str:
    """Build a script returning the serialized markup of the innermost frame."""
    return f"""(function () {{
  {PRELUDE}
  var scope = {document_scope(chain)};
  if (scope.status) return scope;
  return {{ status: '{FOUND}', value: scope.doc.documentElement.outerHTML }};
}})()"""


def _js_bool(value: bool) -> str:
    return "true" if value else "false"


def parse_outcome(
    value: Any, selector: Selector | None, chain: FrameChain = ()
) -> QueryOutcome:
    """Map a script's status object onto a typed query outcome.

    Raises:
        EvaluationError: If the script returned something that is not a
            status object.
    """
    if not isinstance(value, Mapping) or "status" not in value:
        target = selector.raw if selector is not None else "frame"
        raise EvaluationError(
            f"Locator failed: unexpected result while resolving `{target}`: {value!r}"
        )

    status = value["status"]
    count = int(value.get("count") or 0)
    if status == FOUND:
        return Found(
            value=value.get("value"), count=count or 1, index=int(value.get("index") or 0)
        )
    if status == FRAME_NOT_ACCESSIBLE and chain:
        return frame_failure(value, chain)
    if selector is None:
        raise EvaluationError(f"Unexpected frame script status: {status!r}")
    if status == NOT_FOUND:
        return NotFound(selector=selector, count=count)
    if status == AMBIGUOUS:
        return Ambiguous(selector=selector, count=count)
    if status == OUT_OF_RANGE:
        return OutOfRange(selector=selector, count=count, index=int(value.get("index") or 0))
    if status in REJECTIONS:
        return Rejected(selector=selector, reason=status, detail=value.get("detail"))
    raise EvaluationError(f"Unexpected status {status!r} while resolving `{selector.raw}`")
