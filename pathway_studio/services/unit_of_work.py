"""
Unit of work: one database transaction made of named steps.

Multi-step mutations (publish, rollback, reorder, clone, delete-with-repair)
run every constituent write inside a single transaction. If any step
fails the whole transaction is rolled back, so the template is never left
half-updated, and the caller learns exactly which step failed.

Usage::

    with UnitOfWork("publish", template_id=tid) as uow:
        with uow.step("set_status"):
            ...
        with uow.step("create_version"):
            ...
    # committed here; PersistenceError("publish", "<step>") on failure

Failure semantics:
    SQLAlchemyError inside a step  → rollback, PersistenceError(operation, step)
    domain exception inside a step → rollback, re-raised unchanged
    commit failure                 → rollback, PersistenceError(operation, "commit")
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from pathway_studio.core.exceptions import PersistenceError
from pathway_studio.models import db

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Context manager wrapping ``db.session`` in an all-or-nothing transaction."""

    def __init__(self, operation: str, **log_context):
        self.operation = operation
        self.log_context = log_context
        self.completed_steps: list[str] = []
        self.current_step: str | None = None

    def __enter__(self):
        return self

    @contextmanager
    def step(self, name: str):
        """Run one named step; flushes on exit so constraint errors surface here."""
        self.current_step = name
        try:
            yield
            db.session.flush()
        except SQLAlchemyError as exc:
            self._rollback()
            logger.error(
                "%s failed at step %s: %s", self.operation, name, exc,
                extra={"operation": self.operation, "step": name, **self.log_context},
            )
            raise PersistenceError(self.operation, name, str(getattr(exc, "orig", exc))) from exc
        self.completed_steps.append(name)
        self.current_step = None

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            # PersistenceError raised by step() has already rolled back.
            if not isinstance(exc, PersistenceError):
                self._rollback()
            return False
        try:
            db.session.commit()
        except SQLAlchemyError as err:
            self._rollback()
            logger.error(
                "%s failed at commit: %s", self.operation, err,
                extra={"operation": self.operation, "step": "commit", **self.log_context},
            )
            raise PersistenceError(self.operation, "commit", str(getattr(err, "orig", err))) from err
        logger.debug(
            "%s committed (%s)", self.operation, ", ".join(self.completed_steps),
            extra={"operation": self.operation, **self.log_context},
        )
        return False

    def _rollback(self):
        db.session.rollback()
