"""
BaseService -- abstract base for all kernel services.

Every concrete service receives a SQLAlchemy ``Session`` from its caller and
persists through ``session.flush()``, never ``session.commit()``.  The
caller (FormWorkflowService, a script's ``session_scope()``, or the test
harness) owns commit and rollback, which is what lets a multi-step operation
such as a draft rewrite or a stage submission stay atomic.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()`` on the caller's transaction.

    Non-goals:
        - Does NOT provide read-only query methods; those belong in
          ``formflow_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
