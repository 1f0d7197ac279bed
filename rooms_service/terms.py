import logging

from sqlalchemy.orm import Session

from . import models
from .errors import NoActiveTerm

logger = logging.getLogger(__name__)


class TermResolver:
    """
    Read-only lookup of the currently active academic term.

    Every room mutation stamps its history entry with the academic year of
    the active term; when no term is active the mutation must not proceed.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_active_term(self) -> models.Term:
        """
        Return the term whose status is ``Active``.

        Raises
        ------
        NoActiveTerm
            If no term is active.
        """
        terms = (
            self.db.query(models.Term)
            .filter(models.Term.status == models.TermStatus.ACTIVE)
            .order_by(models.Term.id)
            .limit(2)
            .all()
        )
        if not terms:
            raise NoActiveTerm()
        if len(terms) > 1:
            logger.warning(
                "More than one active term found, using academic year %s",
                terms[0].academic_year,
            )
        return terms[0]

    def active_academic_year(self) -> str:
        return self.get_active_term().academic_year
