"""Advisory secondary writes that run after the primary write committed.

Handlers emit named effects while they execute; the queue is dispatched once
the response has been produced (FastAPI ``BackgroundTasks``). Each effect runs
exactly once, in emission order, against its own session with a
service-scoped store. An effect that raises is logged and dropped: it never
changes the response and never undoes the primary write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session, sessionmaker

from src.clinic_admin.infra.db.session import get_session_factory
from src.clinic_admin.infra.db.store import Store, StoreScope

logger = logging.getLogger(__name__)

SideEffect = Callable[..., Any]


@dataclass
class _Pending:
    name: str
    fn: SideEffect
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)


class SideEffectQueue:
    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        self._session_factory = session_factory
        self._pending: List[_Pending] = []

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def names(self) -> List[str]:
        return [effect.name for effect in self._pending]

    def emit(self, name: str, fn: SideEffect, *args: Any, **kwargs: Any) -> None:
        """Queue ``fn(store, *args, **kwargs)`` to run after the response."""

        self._pending.append(_Pending(name=name, fn=fn, args=args, kwargs=kwargs))

    def dispatch(self) -> List[str]:
        """Run and drain every queued effect. Returns the names that failed."""

        factory = self._session_factory or get_session_factory()
        pending, self._pending = self._pending, []
        failed: List[str] = []
        for effect in pending:
            session: Session = factory()
            try:
                effect.fn(Store(session, StoreScope.SERVICE), *effect.args, **effect.kwargs)
            except Exception:
                session.rollback()
                logger.exception("Side effect %s failed", effect.name)
                failed.append(effect.name)
            finally:
                session.close()
        if failed:
            logger.warning("%d of %d side effects failed: %s", len(failed), len(pending), ", ".join(failed))
        return failed


def get_side_effects(background_tasks: BackgroundTasks) -> SideEffectQueue:
    """FastAPI dependency: a fresh queue dispatched after the response."""

    queue = SideEffectQueue()
    background_tasks.add_task(queue.dispatch)
    return queue
