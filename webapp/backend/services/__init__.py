"""Services package for the reporting engine."""

from .identifiers import TableRef, validate_identifier
from .query_builder import BuiltStatement, QueryBuilder
from .transactions import MutationOutcome, run_mutation

__all__ = [
    'TableRef',
    'validate_identifier',
    'BuiltStatement',
    'QueryBuilder',
    'MutationOutcome',
    'run_mutation',
]
