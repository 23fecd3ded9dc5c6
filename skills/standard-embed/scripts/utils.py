#!/usr/bin/env python3
"""
ABOUTME: Shared helpers for the standard-embed scripts
ABOUTME: Content hashing, log previews and environment configuration
"""

import hashlib
import json
import os
from datetime import datetime, timezone
from typing import Any, Optional

DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT = 30.0
DEFAULT_STORE_PATH = '.standard-embed-store.json'


def calculate_content_hash(value: Any) -> str:
    """
    Compute a stable SHA-256 hash of a JSON-compatible value.

    Keys are sorted so that logically equal payloads hash identically
    regardless of insertion order.

    Returns:
        Hex digest string
    """
    canonical = json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(',', ':'))
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


def format_text_preview(text: str, max_len: int = 30) -> str:
    """
    Format text for log output: remove newlines and truncate.

    Args:
        text: Text to format
        max_len: Maximum length before truncation

    Returns:
        Clean, truncated text with "..." suffix if truncated
    """
    clean = (text or '').replace('\n', ' ').replace('\r', '').replace('\t', ' ')
    while '  ' in clean:
        clean = clean.replace('  ', ' ')
    clean = clean.strip()
    if len(clean) > max_len:
        return clean[:max_len] + "..."
    return clean


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string"""
    return datetime.now(timezone.utc).isoformat()


def get_env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on missing or invalid values"""
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def get_max_retries() -> int:
    return max(0, get_env_int("STANDARD_EMBED_MAX_RETRIES", DEFAULT_MAX_RETRIES))


def get_timeout() -> float:
    return get_env_float("STANDARD_EMBED_TIMEOUT", DEFAULT_TIMEOUT)


def get_store_path(override: Optional[str] = None) -> str:
    return override or os.getenv("STANDARD_EMBED_STORE", DEFAULT_STORE_PATH)
