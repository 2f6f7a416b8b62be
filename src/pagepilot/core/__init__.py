"""Core module for the pagepilot automation engine.

This module exports the engine's data types, the transport and the public
browser API.
"""

from pagepilot.core.actions import ActionExecutor
from pagepilot.core.browser import Browser, FrameHandle, Locator, TabHandle
from pagepilot.core.connection import CDPSession, DevToolsEndpoint
from pagepilot.core.dialogs import DialogMediator, accept_dialog, dismiss_dialog
from pagepilot.core.launch import LaunchedChrome, launch_chrome
from pagepilot.core.protocols import (
    Ambiguous,
    AutomationSession,
    Cardinality,
    CardinalityKind,
    DialogDecision,
    DialogKind,
    DialogRequest,
    Found,
    FrameUnreachable,
    NotFound,
    OutOfRange,
    ProtocolSession,
    QueryOutcome,
    Rect,
    Rejected,
    Selector,
    SelectorKind,
    SelectOption,
    TargetInfo,
    TargetRegistry,
)
from pagepilot.core.selectors import resolve
from pagepilot.core.tabs import TargetManager

__all__ = [
    "ActionExecutor",
    "Ambiguous",
    "AutomationSession",
    "Browser",
    "Cardinality",
    "CardinalityKind",
    "CDPSession",
    "DevToolsEndpoint",
    "DialogDecision",
    "DialogKind",
    "DialogMediator",
    "DialogRequest",
    "Found",
    "FrameHandle",
    "FrameUnreachable",
    "LaunchedChrome",
    "Locator",
    "NotFound",
    "OutOfRange",
    "ProtocolSession",
    "QueryOutcome",
    "Rect",
    "Rejected",
    "Selector",
    "SelectorKind",
    "SelectOption",
    "TabHandle",
    "TargetInfo",
    "TargetManager",
    "TargetRegistry",
    "accept_dialog",
    "dismiss_dialog",
    "launch_chrome",
    "resolve",
]
