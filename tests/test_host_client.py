"""
Tests for host_client - request shapes and error mapping (httpx mock transport)
"""

import json
import sys
from pathlib import Path

import httpx
import pytest

# Add scripts directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "skills" / "standard-embed" / "scripts"))

from host_client import (  # type: ignore
    ConfluenceClient,
    ConversionFailed,
    HostRequestError,
    PageSnapshot,
    VersionConflict,
    create_client_from_env,
)

BASE_URL = 'https://wiki.example.com'


def _client(handler):
    return ConfluenceClient(BASE_URL, email='me@example.com', api_token='token',
                            transport=httpx.MockTransport(handler))


class TestFetchPage:
    """Tests for fetch_page"""

    def test_parses_body_version_and_title(self):
        """Storage body, version number and title come back from the page response"""
        seen = {}

        def handler(request):
            seen['url'] = str(request.url)
            return httpx.Response(200, json={
                'id': '42', 'title': 'Plan',
                'version': {'number': 7},
                'body': {'storage': {'value': '<p>x</p>'}},
            })

        snapshot = _client(handler).fetch_page('42')
        assert snapshot == PageSnapshot(page_id='42', title='Plan', version=7, body='<p>x</p>')
        assert seen['url'] == f'{BASE_URL}/wiki/api/v2/pages/42?body-format=storage'

    def test_error_status_raises(self):
        """A 4xx response raises HostRequestError carrying the status"""
        client = _client(lambda request: httpx.Response(404, text='missing'))
        with pytest.raises(HostRequestError) as exc:
            client.fetch_page('42')
        assert exc.value.status_code == 404

    def test_transport_error_wrapped(self):
        """Connection failures surface as HostRequestError"""
        def handler(request):
            raise httpx.ConnectError('refused', request=request)

        with pytest.raises(HostRequestError):
            _client(handler).fetch_page('42')


class TestUpdatePage:
    """Tests for update_page"""

    def test_sends_incremented_version(self):
        """The update sends the current version plus one"""
        seen = {}

        def handler(request):
            seen['method'] = request.method
            seen['payload'] = json.loads(request.content)
            return httpx.Response(200, json={'version': {'number': 8}})

        snapshot = PageSnapshot(page_id='42', title='Plan', version=7, body='')
        assert _client(handler).update_page(snapshot, '<p>new</p>', 'msg') == 8
        assert seen['method'] == 'PUT'
        assert seen['payload'] == {
            'id': '42',
            'status': 'current',
            'title': 'Plan',
            'body': {'representation': 'storage', 'value': '<p>new</p>'},
            'version': {'number': 8, 'message': 'msg'},
        }

    def test_conflict_raises_version_conflict(self):
        """HTTP 409 maps to VersionConflict"""
        client = _client(lambda request: httpx.Response(409, text='stale'))
        with pytest.raises(VersionConflict) as exc:
            client.update_page(PageSnapshot('42', 'Plan', 7, ''), '<p/>')
        assert exc.value.attempted_version == 8

    def test_other_errors_raise_request_error(self):
        """Server errors other than 409 raise HostRequestError"""
        client = _client(lambda request: httpx.Response(500, text='boom'))
        with pytest.raises(HostRequestError):
            client.update_page(PageSnapshot('42', 'Plan', 7, ''), '<p/>')


class TestConvertToStorage:
    """Tests for convert_to_storage"""

    def test_posts_adf_as_json_string(self):
        """The document is sent as a JSON string in the atlas_doc_format body"""
        seen = {}

        def handler(request):
            seen['path'] = request.url.path
            seen['payload'] = json.loads(request.content)
            return httpx.Response(200, json={'value': '<p>converted</p>'})

        adf = {'type': 'doc', 'content': []}
        assert _client(handler).convert_to_storage(adf) == '<p>converted</p>'
        assert seen['path'] == '/wiki/rest/api/contentbody/convert/storage'
        assert seen['payload']['representation'] == 'atlas_doc_format'
        assert json.loads(seen['payload']['value']) == adf

    def test_rejects_non_doc_input(self):
        """Anything other than a doc node is refused before the request"""
        client = _client(lambda request: httpx.Response(200, json={'value': ''}))
        with pytest.raises(ConversionFailed):
            client.convert_to_storage({'type': 'paragraph'})

    def test_error_response_is_conversion_failure(self):
        """A failed conversion request raises ConversionFailed"""
        client = _client(lambda request: httpx.Response(400, text='bad adf'))
        with pytest.raises(ConversionFailed):
            client.convert_to_storage({'type': 'doc', 'content': []})

    def test_missing_value_is_conversion_failure(self):
        """A response without a value raises ConversionFailed"""
        client = _client(lambda request: httpx.Response(200, json={}))
        with pytest.raises(ConversionFailed):
            client.convert_to_storage({'type': 'doc', 'content': []})


class TestCreateClientFromEnv:
    """Tests for create_client_from_env"""

    def test_requires_base_url(self, monkeypatch):
        """Building from the environment needs CONFLUENCE_BASE_URL"""
        monkeypatch.delenv('CONFLUENCE_BASE_URL', raising=False)
        with pytest.raises(ValueError):
            create_client_from_env()

    def test_reads_environment(self, monkeypatch):
        """Base URL, email and token are read from the environment"""
        monkeypatch.setenv('CONFLUENCE_BASE_URL', 'https://wiki.example.com/')
        monkeypatch.setenv('CONFLUENCE_EMAIL', 'me@example.com')
        monkeypatch.setenv('CONFLUENCE_API_TOKEN', 'token')
        client = create_client_from_env()
        assert client.base_url == 'https://wiki.example.com'
        client.close()
