# casri/services/transaction.py

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from casri.core.errors import TransactionFailure

logger = logging.getLogger("casri")


@contextmanager
def atomic(db: Session):
    """
    All-or-nothing unit of work.

    Commits when the block finishes, rolls back on any error. Storage errors
    come out as ``TransactionFailure`` so callers can retry from scratch.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Transaction rolled back: %s", exc, exc_info=True)
        raise TransactionFailure() from exc
    except Exception:
        db.rollback()
        raise
