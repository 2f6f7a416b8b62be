"""Target/tab manager.

Owns the single "current" AutomationSession. Only ``switch_to`` replaces it;
every other component asks the manager for the current session per call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pagepilot.core.dialogs import DialogMediator
from pagepilot.core.protocols import (
    AutomationSession,
    DialogHandler,
    ProtocolSession,
    TargetInfo,
    TargetRegistry,
    TargetSnapshot,
)
from pagepilot.core.waits import poll_until
from pagepilot.utils.config import EngineConfig
from pagepilot.utils.exceptions import TargetNotFound

logger = logging.getLogger(__name__)


class TargetManager:
    """Lists targets, detects new ones and rebinds the current session.

    Args:
        registry: The browser's target registry.
        current: The session the engine starts on. It must already be armed.
        get_handler: Dialog handler indirection used to arm new sessions.
        config: Delays and timeouts.
    """

    def __init__(
        self,
        registry: TargetRegistry,
        current: AutomationSession,
        get_handler: Callable[[], DialogHandler | None],
        config: EngineConfig | None = None,
    ) -> None:
        self._registry = registry
        self._current = current
        self._get_handler = get_handler
        self.config = config or EngineConfig()

    @property
    def current(self) -> AutomationSession:
        return self._current

    def session(self) -> ProtocolSession:
        """The protocol session of the current target."""
        return self._current.session

    async def list(self) -> TargetSnapshot:
        """Snapshot of open page targets, in registry order."""
        return tuple(await self._registry.list_targets())

    async def open_session(self, target_id: str) -> AutomationSession:
        """Attach to ``target_id`` and arm dialog handling on the new session."""
        session = await self._registry.attach(target_id)
        DialogMediator(session).arm(self._get_handler)
        return AutomationSession(session=session, target_id=target_id)

    async def _find(self, index_or_id: Any) -> TargetInfo:
        if isinstance(index_or_id, bool) or not isinstance(index_or_id, (int, str)):
            raise TypeError(
                f"switch_to_tab() expects a tab index or target id, "
                f"got {type(index_or_id).__name__}"
            )
        targets = await self.list()
        if isinstance(index_or_id, int):
            if 0 <= index_or_id < len(targets):
                return targets[index_or_id]
            raise TargetNotFound(
                f"Tab index {index_or_id} out of range ({len(targets)} tab(s) open)"
            )
        for target in targets:
            if target.id == index_or_id:
                return target
        raise TargetNotFound(f"No tab with id {index_or_id!r}")

    async def switch_to(self, index_or_id: int | str) -> TargetInfo:
        """Make another target current.

        Attaches to the requested target and arms dialog handling on it
        before closing the old session, so a failed attach leaves the
        current tab usable. Pauses briefly so the new document is queryable.

        Raises:
            TargetNotFound: If the index or id matches no open page target.
        """
        target = await self._find(index_or_id)
        new = await self.open_session(target.id)
        old = self._current
        try:
            await old.session.close()
        except Exception as e:
            logger.warning(f"Error closing session for target {old.target_id}: {e}")

        self._current = new
        logger.info(f"Switched to tab {target.id} ({target.url})")
        await asyncio.sleep(self.config.tab_switch_delay / 1000)
        return target

    async def wait_for_new_target(
        self, timeout: int | None = None
    ) -> tuple[TargetInfo, AutomationSession]:
        """Wait for a target that was not open when the call started.

        When several appear between polls, the first one in registry order
        is taken. The returned session is separate from the current one.

        Raises:
            WaitTimeout: If no new target appears in time.
        """
        timeout = self.config.new_tab_timeout if timeout is None else timeout
        known = {target.id for target in await self.list()}

        async def appeared() -> tuple[bool, Any]:
            targets = await self.list()
            new = [target for target in targets if target.id not in known]
            if new:
                return True, new[0]
            return False, f"{len(targets)} tab(s) open"

        target = await poll_until(appeared, timeout, self.config.poll_interval, "a new tab")
        logger.info(f"New tab opened: {target.id} ({target.url})")
        return target, await self.open_session(target.id)
