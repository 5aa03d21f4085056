"""
Session scopes for multi-step writes.
"""
from contextlib import contextmanager

from dairyflow.extensions import db


@contextmanager
def unit_of_work():
    """Commit everything done inside the block, or roll all of it back."""
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


@contextmanager
def savepoint():
    """Isolate one item of a bulk operation; a failure undoes only that item."""
    nested = db.session.begin_nested()
    try:
        yield db.session
        nested.commit()
    except Exception:
        if nested.is_active:
            nested.rollback()
        raise
