"""Dialog mediator.

Native dialogs (alert/confirm/prompt/beforeunload) block the page until
resolved. The mediator subscribes once per session and, on every dialog,
asks the currently installed handler for a decision. The handler is fetched
through ``get_handler`` at event time, so swapping handlers never needs a
new subscription.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pagepilot.core.protocols import (
    DialogDecision,
    DialogHandler,
    DialogKind,
    DialogRequest,
    ProtocolSession,
)

logger = logging.getLogger(__name__)


def accept_dialog(request: DialogRequest) -> DialogDecision:
    """Default handler: press OK, with an empty prompt answer."""
    return DialogDecision(accept=True, prompt_text="")


def dismiss_dialog(request: DialogRequest) -> DialogDecision:
    """Press Cancel."""
    return DialogDecision(accept=False)


def parse_request(params: dict[str, Any]) -> DialogRequest:
    """Build a DialogRequest from ``Page.javascriptDialogOpening`` params."""
    try:
        kind = DialogKind(params.get("type", "alert"))
    except ValueError:
        kind = DialogKind.ALERT
    return DialogRequest(
        kind=kind,
        message=params.get("message", ""),
        url=params.get("url", ""),
        default_prompt=params.get("defaultPrompt", ""),
    )


def as_decision(value: Any) -> DialogDecision | None:
    """Coerce a handler result into a DialogDecision.

    Mappings with an ``accept`` key are accepted too, with the prompt answer
    under ``prompt_text`` or ``promptText``. Anything else yields None.
    """
    if isinstance(value, DialogDecision):
        return value
    if isinstance(value, Mapping) and "accept" in value:
        prompt_text = value.get("prompt_text", value.get("promptText"))
        return DialogDecision(
            accept=bool(value["accept"]),
            prompt_text=None if prompt_text is None else str(prompt_text),
        )
    return None


class DialogMediator:
    """Resolves every dialog opened on one session."""

    def __init__(
        self, session: ProtocolSession, default: DialogHandler = accept_dialog
    ) -> None:
        self._session = session
        self._default = default
        self._get_handler: Callable[[], DialogHandler | None] | None = None

    @property
    def armed(self) -> bool:
        return self._get_handler is not None

    def arm(self, get_handler: Callable[[], DialogHandler | None]) -> None:
        """Subscribe to dialog events.

        Args:
            get_handler: Returns the handler to use for the next dialog, or
                None to apply the default.

        Raises:
            RuntimeError: If this mediator was already armed.
        """
        if self._get_handler is not None:
            raise RuntimeError("Dialog mediator is already armed for this session")
        self._get_handler = get_handler
        self._session.on_dialog_opening(self._on_dialog)

    async def _on_dialog(self, params: dict[str, Any]) -> None:
        request = parse_request(params)
        logger.debug(f"Dialog opened ({request.kind.value}): {request.message!r}")
        decision = await self.decide(request)
        await self._session.handle_dialog(decision.accept, decision.prompt_text)
        logger.debug(
            f"Dialog {'accepted' if decision.accept else 'dismissed'}: {request.message!r}"
        )

    async def decide(self, request: DialogRequest) -> DialogDecision:
        """Ask the installed handler, falling back to the default on None or error."""
        handler = self._get_handler() if self._get_handler else None
        if handler is None:
            handler = self._default
        try:
            decision = handler(request)
            if inspect.isawaitable(decision):
                decision = await decision
        except Exception:
            logger.warning("Dialog handler raised, applying default decision", exc_info=True)
            return await self._default_decision(request)

        result = as_decision(decision)
        if result is None:
            logger.warning(
                f"Dialog handler returned {type(decision).__name__}, "
                "expected DialogDecision; applying default decision"
            )
            return await self._default_decision(request)
        return result

    async def _default_decision(self, request: DialogRequest) -> DialogDecision:
        decision = self._default(request)
        if inspect.isawaitable(decision):
            decision = await decision
        return decision
