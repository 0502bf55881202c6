"""Exception types shared across the validator monitor."""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for validator monitor errors."""


class ConfigError(MonitorError):
    """Configuration could not be loaded or failed validation."""


class RpcError(MonitorError):
    """A call to the node RPC failed.

    Checkers log these and carry on; the next tick is the only retry.
    """

    def __init__(self, message: str, *, endpoint: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class TxDecodeError(MonitorError):
    """Raw transaction bytes are not a valid transaction envelope."""


class DispatchError(MonitorError):
    """One or more checker commands could not be enqueued during a tick."""

    def __init__(self, failures: list[tuple[str, Exception]]):
        self.failures = list(failures)
        summary = ", ".join(f"{name}: {err}" for name, err in self.failures)
        super().__init__(f"failed to dispatch to checkers ({summary})")


class CheckerCrashed(MonitorError):
    """A checker task stopped because of an unexpected exception."""

    def __init__(self, checker: str, endpoint: str, cause: BaseException):
        super().__init__(f"{checker} checker for {endpoint} crashed: {cause!r}")
        self.checker = checker
        self.endpoint = endpoint
        self.cause = cause
