"""Target database introspection.

Usage:
    from db_restore.schema import TargetIntrospector, TableRef
"""

from db_restore.schema.introspector import TargetIntrospector
from db_restore.schema.models import TableRef

__all__ = [
    "TargetIntrospector",
    "TableRef",
]
