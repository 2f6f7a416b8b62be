"""Utilities module for pagepilot."""

from .config import ConfigLoader, EngineConfig
from .exceptions import (
    AmbiguousSelector,
    BrowserLaunchError,
    CDPConnectionError,
    ConfigurationError,
    ElementNotFound,
    ElementStateError,
    EvaluationError,
    FrameNotAccessible,
    IndexOutOfRange,
    LocatorError,
    NavigationError,
    NotCheckable,
    NotSelectable,
    OptionNotFound,
    PagePilotError,
    PermanentError,
    ProtocolError,
    SessionClosed,
    TargetNotFound,
    TransientError,
    WaitTimeout,
)

__all__ = [
    "AmbiguousSelector",
    "BrowserLaunchError",
    "CDPConnectionError",
    "ConfigLoader",
    "ConfigurationError",
    "ElementNotFound",
    "ElementStateError",
    "EngineConfig",
    "EvaluationError",
    "FrameNotAccessible",
    "IndexOutOfRange",
    "LocatorError",
    "NavigationError",
    "NotCheckable",
    "NotSelectable",
    "OptionNotFound",
    "PagePilotError",
    "PermanentError",
    "ProtocolError",
    "SessionClosed",
    "TargetNotFound",
    "TransientError",
    "WaitTimeout",
]
