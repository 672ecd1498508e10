"""
Retention Policy Management

Count-based retention for backups of one directory. Backup names embed a
timestamp, so ascending name order is oldest first; the policy keeps the
newest N and always keeps a configured minimum.
"""

import logging
from typing import List, Sequence, Tuple

logger = logging.getLogger(__name__)


class RetentionPolicy:
    """
    Decide which backups of a directory to keep.

    Example:
        ```python
        policy = RetentionPolicy(retention_count=3, min_backups_to_keep=1)
        to_keep, to_delete = policy.split(["b-1", "b-2", "b-3", "b-4"])
        # to_keep == ["b-2", "b-3", "b-4"], to_delete == ["b-1"]
        ```
    """

    def __init__(self, retention_count: int, min_backups_to_keep: int = 1):
        """
        Args:
            retention_count: Number of most recent backups to keep
            min_backups_to_keep: Floor applied to retention_count
        """
        if retention_count < 0:
            raise ValueError("retention_count cannot be negative")
        if min_backups_to_keep < 0:
            raise ValueError("min_backups_to_keep cannot be negative")

        self.retention_count = retention_count
        self.min_backups_to_keep = min_backups_to_keep

        if retention_count < min_backups_to_keep:
            logger.warning(
                f"retention_count ({retention_count}) is less than "
                f"min_backups_to_keep ({min_backups_to_keep}). "
                f"min_backups_to_keep will take precedence."
            )

    @property
    def effective_count(self) -> int:
        return max(self.retention_count, self.min_backups_to_keep)

    def split(self, names: Sequence[str]) -> Tuple[List[str], List[str]]:
        """
        Split backup names into (to_keep, to_delete), both oldest first.

        Args:
            names: Backup names of one directory, in any order
        """
        ordered = sorted(set(names))
        cut = max(len(ordered) - self.effective_count, 0)
        to_delete, to_keep = ordered[:cut], ordered[cut:]

        logger.debug(
            f"Retention policy: {len(to_keep)} backups to keep, {len(to_delete)} to delete"
        )
        return to_keep, to_delete

    def __repr__(self) -> str:
        return (
            f"RetentionPolicy("
            f"count={self.retention_count}, "
            f"min={self.min_backups_to_keep})"
        )
