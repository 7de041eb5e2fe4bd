"""Checker plugin contract.

A checker probes one aspect of the host and reports Issues. It may also own
fix actions; ownership is signalled through FixOutcome, never by raising.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from .models import CheckCategory, FixOutcome, Issue, ScanContext

logger = logging.getLogger(__name__)


class Checker(ABC):
    """Base class for all checkers registered with the ScannerEngine.

    Subclasses implement ``name``, ``category`` and ``run``. Checkers that
    offer remediations override ``fix`` and return
    ``FixOutcome.not_applicable()`` for any action they do not own.

    Advisory scan flags (``quick``, ``exclude_apps``, ``exclude_startup``)
    are the checker's own business: a checker that should be skipped under
    one of them returns ``[]`` from ``run``.
    """

    # Action ids (exact) and prefixes (for per-item actions) this checker owns.
    fix_actions: tuple[str, ...] = ()
    fix_action_prefixes: tuple[str, ...] = ()

    @abstractmethod
    def name(self) -> str:
        """Stable checker name used in logs and scan details."""

    @abstractmethod
    def category(self) -> CheckCategory:
        """Category used by the engine to gate the checker on ScanOptions."""

    @abstractmethod
    def run(self, context: ScanContext) -> list[Issue]:
        """Probe the host and return the issues found."""

    def fix(self, action_id: str, params: dict[str, Any]) -> FixOutcome:
        return FixOutcome.not_applicable()

    def owns_action(self, action_id: str) -> bool:
        return action_id in self.fix_actions or any(
            action_id.startswith(p) for p in self.fix_action_prefixes
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {checker_name(self)!r}>"


def checker_name(checker: Checker) -> str:
    """``checker.name()``, or the class name when the checker can't report one."""
    try:
        return str(checker.name())
    except Exception:
        logger.exception("Checker %s failed to report its name", type(checker).__name__)
        return type(checker).__name__
