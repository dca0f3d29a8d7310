"""
models/user.py
--------------
Domain model for registered accounts.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class User:
    """
    Represents a registered user.

    Attributes:
        id: Database primary key.
        email: Unique login address.
        password_hash: Hash produced by the auth layer; never the raw password.
        created_at: Timestamp when the account was created.
    """
    id: int
    email: str
    password_hash: str = field(repr=False)
    created_at: Optional[datetime] = None
