"""
Module: formflow_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the query side of the kernel: they read ORM rows and hand
    back frozen DTOs.  Methods named ``get_model`` / ``*_model`` return ORM
    rows and exist for kernel services only.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/ DTOs.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(), delete(),
      commit() or flush().
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs.
    """

    def __init__(self, session: Session):
        self.session = session
