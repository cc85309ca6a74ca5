"""
Per-operation Transactions.

A Transaction belongs to exactly one install or uninstall run. It records the
audit trail of actions taken (or planned, in dry-run mode) and owns the undo
stack used to roll the run back if a later step fails.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

UndoAction = Callable[[], None]


class ActionKind(Enum):
    """Kinds of actions recorded in an operation's audit trail."""

    VALIDATE = "validate"
    CHECK_DEPS = "check-deps"
    CREATE_DIR = "create-dir"
    COPY_FILE = "copy-file"
    BACKUP = "backup"
    REMOVE_DIR = "remove-dir"
    REMOVE_FILE = "remove-file"
    UPDATE_REGISTRY = "update-registry"
    ARCHIVE = "archive"
    ROLLBACK = "rollback"


@dataclass
class ActionRecord:
    """
    A single audit-trail entry.

    Attributes:
        kind: What kind of step this was
        description: Human-readable description
        path: Path affected, if any
        executed: False for dry-run previews (no side effect happened)
    """

    kind: ActionKind
    description: str
    path: Path | None = None
    executed: bool = True

    def to_dict(self) -> dict:
        data = {"type": self.kind.value, "description": self.description, "executed": self.executed}
        if self.path is not None:
            data["path"] = str(self.path)
        return data


class Transaction:
    """
    Undo stack and audit trail for one mutating run.

    Undo actions are pushed right after the forward step they revert has
    succeeded. On failure they run last-in first-out; each one's own failure is
    logged and skipped. Cleanups registered with `on_commit` run only when the
    run succeeds.

    Example:
        txn = Transaction(dry_run=False)
        created = fs_ops.make_dirs(path)
        txn.push_undo(lambda: fs_ops.remove_tree(path), f"remove {path}")
        ...
        txn.commit()        # or txn.rollback() from the error handler
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.actions: list[ActionRecord] = []
        self._undo: list[tuple[str, UndoAction]] = []
        self._on_commit: list[tuple[str, UndoAction]] = []

    def record(
        self,
        kind: ActionKind,
        description: str,
        path: Path | None = None,
        executed: bool = True,
    ) -> ActionRecord:
        action = ActionRecord(kind=kind, description=description, path=path, executed=executed)
        self.actions.append(action)
        return action

    def plan(self, kind: ActionKind, description: str, path: Path | None = None) -> ActionRecord:
        """Record a dry-run preview entry."""
        return self.record(kind, description, path=path, executed=False)

    def push_undo(self, action: UndoAction, label: str = "") -> None:
        if self.dry_run:
            raise RuntimeError("Dry-run transactions cannot hold undo actions")
        self._undo.append((label, action))

    def on_commit(self, action: UndoAction, label: str = "") -> None:
        self._on_commit.append((label, action))

    @property
    def pending_undo(self) -> int:
        return len(self._undo)

    def rollback(self) -> int:
        """
        Run the undo stack LIFO, then clear it.

        Never raises. Pending commit cleanups are discarded.

        Returns:
            Number of undo actions that failed
        """
        failures = 0
        while self._undo:
            label, action = self._undo.pop()
            try:
                action()
                logger.debug("Rolled back: %s", label)
            except Exception as e:
                failures += 1
                logger.warning("Rollback step failed (%s): %s", label or "unnamed", e)
        self._on_commit.clear()
        return failures

    def commit(self) -> list[str]:
        """
        Discard the undo stack and run commit cleanups in registration order.

        Cleanup failures never undo the committed run; they are returned as
        warning messages.
        """
        self._undo.clear()
        warnings = []
        for label, action in self._on_commit:
            try:
                action()
            except Exception as e:
                logger.warning("Cleanup failed (%s): %s", label or "unnamed", e)
                warnings.append(f"Cleanup failed ({label or 'unnamed'}): {e}")
        self._on_commit.clear()
        return warnings
