from __future__ import annotations

import uuid
from typing import Optional


def new_request_id(existing: Optional[str] = None) -> str:
    if existing and isinstance(existing, str) and existing.strip():
        return existing.strip()
    return str(uuid.uuid4())


__all__ = ["new_request_id"]
