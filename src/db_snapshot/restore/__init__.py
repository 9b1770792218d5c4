"""Artifact replay and live copy against the target.

Usage:
    from db_snapshot.restore import RestoreExecutor, iter_statements
"""

from db_snapshot.restore.executor import RestoreExecutor
from db_snapshot.restore.script import ScriptStatement, iter_statements

__all__ = ["RestoreExecutor", "ScriptStatement", "iter_statements"]
