"""
models/task.py
--------------
Domain model for to-do items.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Task:
    """
    Represents a single task owned by one user.

    Attributes:
        id: Database primary key (None for new records).
        owner_id: ID of the user the task belongs to.
        description: What needs doing.
        done: Whether the task has been completed.
        created_at: Timestamp when the record was created.
        updated_at: Timestamp of the last update.
    """
    description: str
    owner_id: Optional[int] = None
    done: bool = False
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __str__(self) -> str:
        mark = "x" if self.done else " "
        return f"[{mark}] #{self.id} {self.description}"
