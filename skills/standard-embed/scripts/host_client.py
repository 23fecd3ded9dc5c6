#!/usr/bin/env python3
"""
ABOUTME: HTTP client for the host wiki: page fetch/update and ADF-to-storage conversion
ABOUTME: Maps host failures onto typed errors (VersionConflict, ConversionFailed, HostRequestError)
"""

import json
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from utils import get_timeout

CONVERT_PATH = '/wiki/rest/api/contentbody/convert/storage'
PAGE_PATH = '/wiki/api/v2/pages/{page_id}'

# ============================================================
# Errors
# ============================================================

class HostError(Exception):
    """Base class for host interaction failures"""


class HostRequestError(HostError):
    """Non-success response (other than a version conflict) or transport failure"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class VersionConflict(HostError):
    """Page was modified since it was fetched; safe to re-fetch and retry"""

    def __init__(self, page_id: str, attempted_version: int):
        super().__init__(f"Version conflict updating page {page_id} (attempted version {attempted_version})")
        self.page_id = page_id
        self.attempted_version = attempted_version


class ConversionFailed(HostError):
    """The host could not convert ADF into storage markup"""


# ============================================================
# Data Classes
# ============================================================

@dataclass
class PageSnapshot:
    """Storage body and version of a page at fetch time"""
    page_id: str
    title: str
    version: int
    body: str


# ============================================================
# Client
# ============================================================

class ConfluenceClient:
    """
    Minimal synchronous client for the endpoints the publisher needs.

    Authenticates with email + API token (basic auth). A custom httpx
    transport may be supplied, e.g. httpx.MockTransport in tests.
    """

    def __init__(self, base_url: str, email: Optional[str] = None, api_token: Optional[str] = None,
                 timeout: Optional[float] = None, verbose: bool = False,
                 transport: Optional[httpx.BaseTransport] = None):
        if not base_url:
            raise ValueError("Host base URL is required")
        self.base_url = base_url.rstrip('/')
        self.verbose = verbose
        auth = (email, api_token) if email and api_token else None
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=auth,
            timeout=timeout if timeout is not None else get_timeout(),
            headers={'Accept': 'application/json', 'Content-Type': 'application/json'},
            transport=transport,
        )

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise HostRequestError(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        text = response.text or ''
        return text[:200] if len(text) > 200 else text

    def fetch_page(self, page_id: str) -> PageSnapshot:
        """
        Fetch a page's storage body, title and current version number.

        Raises:
            HostRequestError: On any non-success response
        """
        path = PAGE_PATH.format(page_id=page_id)
        response = self._request('GET', path, params={'body-format': 'storage'})
        if response.status_code != 200:
            raise HostRequestError(
                f"Failed to fetch page {page_id}: HTTP {response.status_code} {self._error_detail(response)}",
                status_code=response.status_code,
            )
        data = response.json()
        snapshot = PageSnapshot(
            page_id=str(data.get('id', page_id)),
            title=data.get('title') or '',
            version=int((data.get('version') or {}).get('number') or 0),
            body=((data.get('body') or {}).get('storage') or {}).get('value') or '',
        )
        if self.verbose:
            print(f"  [Host] Fetched page {page_id} v{snapshot.version} ({len(snapshot.body)} chars)")
        return snapshot

    def update_page(self, snapshot: PageSnapshot, new_body: str, message: str = '') -> int:
        """
        Write a new storage body tagged with `snapshot.version + 1`.

        Returns:
            The new version number

        Raises:
            VersionConflict: If the host rejects the version (HTTP 409)
            HostRequestError: On any other non-success response
        """
        new_version = snapshot.version + 1
        payload = {
            'id': snapshot.page_id,
            'status': 'current',
            'title': snapshot.title,
            'body': {'representation': 'storage', 'value': new_body},
            'version': {'number': new_version, 'message': message},
        }
        path = PAGE_PATH.format(page_id=snapshot.page_id)
        response = self._request('PUT', path, json=payload)
        if response.status_code == 409:
            raise VersionConflict(snapshot.page_id, new_version)
        if not response.is_success:
            raise HostRequestError(
                f"Failed to update page {snapshot.page_id}: HTTP {response.status_code} "
                f"{self._error_detail(response)}",
                status_code=response.status_code,
            )
        if self.verbose:
            print(f"  [Host] Updated page {snapshot.page_id} to v{new_version}")
        return new_version

    def convert_to_storage(self, adf: Dict[str, Any]) -> str:
        """
        Convert an ADF document into storage markup.

        Raises:
            ConversionFailed: On invalid input, non-success response or missing value
        """
        if not isinstance(adf, dict) or adf.get('type') != 'doc':
            raise ConversionFailed("Conversion input must be an ADF document with type 'doc'")
        body = {'value': json.dumps(adf), 'representation': 'atlas_doc_format'}
        try:
            response = self._request('POST', CONVERT_PATH, json=body)
        except HostRequestError as e:
            raise ConversionFailed(str(e)) from e
        if not response.is_success:
            raise ConversionFailed(
                f"Conversion failed: HTTP {response.status_code} {self._error_detail(response)}"
            )
        value = response.json().get('value')
        if not isinstance(value, str):
            raise ConversionFailed("Conversion response did not contain a storage value")
        if self.verbose:
            print(f"  [Host] Converted content ({len(value)} chars)")
        return value


def create_client_from_env(verbose: bool = False) -> ConfluenceClient:
    """
    Create a client from CONFLUENCE_BASE_URL / CONFLUENCE_EMAIL / CONFLUENCE_API_TOKEN.

    Raises:
        ValueError: If CONFLUENCE_BASE_URL is not set
    """
    base_url = os.getenv("CONFLUENCE_BASE_URL")
    if not base_url:
        raise ValueError("CONFLUENCE_BASE_URL environment variable is required")
    email = os.getenv("CONFLUENCE_EMAIL")
    api_token = os.getenv("CONFLUENCE_API_TOKEN")
    if not (email and api_token):
        print("Warning: CONFLUENCE_EMAIL/CONFLUENCE_API_TOKEN not set, requests are unauthenticated",
              file=sys.stderr)
    return ConfluenceClient(base_url, email=email, api_token=api_token, verbose=verbose)
