"""Exceptions raised by wfes.

Every error carries two texts: the exception message, which is terse and
goes to the debug log together with the ``context`` values, and a
``user_message`` printed on the command line.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional


class WfesError(Exception):
    """Base exception for wfes failures."""

    def __init__(self, message: str, *, user_message: Optional[str] = None,
                 context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.user_message = user_message or message
        self.context = dict(context or {})

    def log_message(self) -> str:
        """Message followed by the context values, e.g. ``singular pivot [phase=22, status=2]``."""
        if not self.context:
            return str(self)
        details = ", ".join(f"{key}={value!r}" for key, value in self.context.items())
        return f"{self} [{details}]"


class ParameterError(WfesError, ValueError):
    """Model parameters outside the range the chain is defined for."""


class MatrixAssemblyError(WfesError):
    """The assembled generator matrix is not a well-formed CSR matrix."""


class SolverError(WfesError):
    """Fatal error reported by one of the direct solver phases.

    ``phase`` is the phase code (see ``wfes.solver.SolverPhase``) and
    ``status`` the nonzero status number for that phase.
    """

    def __init__(self, message: str, *, phase: int, status: int,
                 user_message: Optional[str] = None,
                 context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(
            message,
            user_message=user_message,
            context={"phase": phase, "status": status, **(context or {})},
        )
        self.phase = phase
        self.status = status


__all__ = [
    "WfesError",
    "ParameterError",
    "MatrixAssemblyError",
    "SolverError",
]
