from contextlib import contextmanager

from library_app.extensions import db


@contextmanager
def atomic():
    """
    One transaction around a block of repository calls.

    Repositories only flush; the single commit happens here, and any exception
    raised inside the block rolls everything back before propagating.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
