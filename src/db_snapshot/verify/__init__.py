"""Post-run verification by object and row counts."""

from db_snapshot.verify.models import RunReport, TableRowCount
from db_snapshot.verify.verifier import Verifier

__all__ = ["RunReport", "TableRowCount", "Verifier"]
