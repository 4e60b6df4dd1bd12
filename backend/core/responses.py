"""Uniform JSON envelope: {success, data, metadata} or {success, error, code, metadata}."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def success_envelope(data: Any, **metadata: Any) -> Dict[str, Any]:
    meta: Dict[str, Any] = {"timestamp": _timestamp()}
    meta.update(metadata)
    return {"success": True, "data": data, "metadata": meta}


def error_envelope(
    message: str,
    code: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": False,
        "error": message,
        "code": code,
        "metadata": {"timestamp": _timestamp()},
    }
    if details is not None:
        body["details"] = details
    return body


def pagination_metadata(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next_page": page < total_pages,
        "has_previous_page": page > 1,
    }
