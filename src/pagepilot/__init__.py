"""pagepilot - browser automation engine over the Chrome DevTools Protocol."""

from pagepilot.core.browser import Browser, FrameHandle, Locator, TabHandle
from pagepilot.core.dialogs import accept_dialog, dismiss_dialog
from pagepilot.core.protocols import (
    DialogDecision,
    DialogKind,
    DialogRequest,
    SelectOption,
    TargetInfo,
)
from pagepilot.utils.config import ConfigLoader, EngineConfig

__version__ = "0.1.0"

__all__ = [
    "Browser",
    "ConfigLoader",
    "DialogDecision",
    "DialogKind",
    "DialogRequest",
    "EngineConfig",
    "FrameHandle",
    "Locator",
    "SelectOption",
    "TabHandle",
    "TargetInfo",
    "__version__",
    "accept_dialog",
    "dismiss_dialog",
]
