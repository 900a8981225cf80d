"""Utilities for generating identifiers used across the service."""

from __future__ import annotations

import uuid


def new_request_id() -> str:
    return f"rq_{uuid.uuid4().hex}"


def new_traversal_id() -> str:
    return f"tr_{uuid.uuid4().hex}"
