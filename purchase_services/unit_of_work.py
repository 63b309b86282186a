"""
purchase_services.unit_of_work -- One transaction per workflow operation.

Wraps the writes of a single operation so they commit together or not at
all.  With ``auto_commit`` off the caller owns the commit, but a failure
still rolls the session back so no partial state leaks into it.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

from purchase_kernel.logging_config import get_logger

logger = get_logger("services.unit_of_work")


@contextmanager
def unit_of_work(session: Session, auto_commit: bool = True) -> Generator[Session, None, None]:
    try:
        yield session
        if auto_commit:
            session.commit()
        else:
            session.flush()
    except Exception:
        session.rollback()
        logger.debug("unit_of_work_rolled_back", exc_info=True)
        raise
