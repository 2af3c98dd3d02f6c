"""Post-restore verification.

Usage:
    from db_restore.verify import Verifier
"""

from db_restore.verify.verifier import Verifier, verification_progress

__all__ = [
    "Verifier",
    "verification_progress",
]
