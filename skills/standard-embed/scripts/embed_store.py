#!/usr/bin/env python3
"""
ABOUTME: Key/value storage for Sources and per-embed publish records
ABOUTME: In-memory store for tests and a JSON file store for the command line
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

SOURCE_KEY_PREFIX = 'excerpt:'
EMBED_KEY_PREFIX = 'macro-vars:'


def source_key(source_id: str) -> str:
    return f"{SOURCE_KEY_PREFIX}{source_id}"


def embed_key(local_id: str) -> str:
    return f"{EMBED_KEY_PREFIX}{local_id}"


class EmbedStore:
    """get/set/delete by string key; values are JSON-compatible"""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any):
        raise NotImplementedError

    def delete(self, key: str):
        raise NotImplementedError


class MemoryStore(EmbedStore):

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any):
        self._data[key] = value

    def delete(self, key: str):
        self._data.pop(key, None)


class JsonFileStore(EmbedStore):
    """
    Store backed by a single JSON object on disk.

    Every write rewrites the file through a temporary sibling and an atomic
    rename, so a crash never leaves a half-written store.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            text = f.read()
        if not text.strip():
            return {}
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"Store file {self.path} must contain a JSON object")
        return data

    def _save(self, data: Dict[str, Any]):
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[Any]:
        return self._load().get(key)

    def set(self, key: str, value: Any):
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str):
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)
