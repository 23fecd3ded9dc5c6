#!/usr/bin/env python3
"""
ABOUTME: Publishes rendered Standard embeds into host pages as chapter regions
ABOUTME: Fetch page + version, render, convert, splice, update with version + 1, persist publish record
"""

import argparse
import json
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from adf_model import (
    Node,
    decode_definitions,
    decode_insertions,
    decode_node,
    decode_notes,
    decode_toggle_states,
    decode_variable_values,
    encode_node,
)
from adf_render import (
    RenderOptions,
    detect_variable_occurrences,
    detect_variables,
    extract_text_with_toggle_markers,
    merge_occurrences,
    render_source_content,
    render_with_ghosts,
)
from embed_store import EmbedStore, JsonFileStore, embed_key, source_key
from host_client import (
    ConfluenceClient,
    ConversionFailed,
    HostError,
    PageSnapshot,
    VersionConflict,
    create_client_from_env,
)
from storage_format import (
    CHAPTER_ID_PREFIX,
    append_chapter,
    build_chapter,
    build_freeform_chapter,
    build_placeholder,
    chapter_exists,
    chapter_id_for,
    enumerate_chapters,
    locate,
    remove_chapter,
    replace_region,
    strip_leading_heading,
)
from utils import (
    calculate_content_hash,
    format_text_preview,
    get_max_retries,
    get_store_path,
    utc_timestamp,
)
from xml_utils import chapter_heading_text, check_well_formed, sanitize_xml_string

# ============================================================
# Constants
# ============================================================

PLACEHOLDER_COMPLIANCE_LEVEL = 'tbd'

# ============================================================
# Data Classes
# ============================================================

@dataclass
class PublishRequest:
    """
    One embed to publish.

    Fields left as None fall back to the embed's stored publish record.
    """
    local_id: str
    source_id: str
    heading: Optional[str] = None
    variable_values: Optional[Dict[str, str]] = None
    toggle_states: Optional[Dict[str, bool]] = None
    custom_insertions: Optional[List[Dict[str, Any]]] = None
    internal_notes: Optional[List[Dict[str, Any]]] = None
    compliance_level: Optional[str] = None
    is_freeform: Optional[bool] = None
    freeform_content: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PublishRequest':
        if not data.get('local_id') or not data.get('source_id'):
            raise ValueError("Publish request requires local_id and source_id")
        return cls(
            local_id=data['local_id'],
            source_id=data['source_id'],
            heading=data.get('heading'),
            variable_values=data.get('variable_values'),
            toggle_states=data.get('toggle_states'),
            custom_insertions=data.get('custom_insertions'),
            internal_notes=data.get('internal_notes'),
            compliance_level=data.get('compliance_level'),
            is_freeform=data.get('is_freeform'),
            freeform_content=data.get('freeform_content'),
        )


@dataclass
class PublishResult:
    """Result of one publish, placeholder or removal operation"""
    success: bool
    local_id: str
    message: str = ''
    error_message: Optional[str] = None
    chapter_id: Optional[str] = None
    page_version: Optional[int] = None


@dataclass
class PreparedChapter:
    """Chapter markup plus the publish record to persist once the page write succeeds"""
    request: PublishRequest
    markup: str
    source_name: str = ''
    record: Dict[str, Any] = field(default_factory=dict)


class PublishError(Exception):
    """Publishing cannot proceed (missing Source, invalid stored content)"""


# ============================================================
# Helper Functions
# ============================================================

def local_id_from(identifier: str) -> str:
    """Accept either a local id or a chapter id (chapter-{local_id})"""
    if identifier.startswith(CHAPTER_ID_PREFIX):
        return identifier[len(CHAPTER_ID_PREFIX):]
    return identifier


def source_content_hash(source: Dict[str, Any]) -> str:
    """Stored Source hash, or a hash of its content when none was stored"""
    return source.get('content_hash') or calculate_content_hash(source.get('content'))


def merge_chapter(body: str, local_id: str, markup: str) -> str:
    """Replace the chapter region for `local_id`, or append the chapter when absent"""
    region = locate(body, local_id)
    if region is not None:
        return replace_region(body, region, markup)
    return append_chapter(body, markup)


def resolve_settings(request: PublishRequest, stored: Dict[str, Any]) -> Dict[str, Any]:
    """Merge request values over the stored publish record"""
    def pick(value, key, default):
        if value is not None:
            return value
        stored_value = stored.get(key)
        return stored_value if stored_value is not None else default

    return {
        'variable_values': decode_variable_values(pick(request.variable_values, 'variable_values', {})),
        'toggle_states': decode_toggle_states(pick(request.toggle_states, 'toggle_states', {})),
        'custom_insertions': pick(request.custom_insertions, 'custom_insertions', []),
        'internal_notes': pick(request.internal_notes, 'internal_notes', []),
        'compliance_level': pick(request.compliance_level, 'compliance_level', None),
        'is_freeform': bool(pick(request.is_freeform, 'is_freeform', False)),
        'freeform_content': pick(request.freeform_content, 'freeform_content', ''),
    }


def source_render_inputs(source: Dict[str, Any], settings: Dict[str, Any]) -> Tuple[Node, RenderOptions]:
    """
    Decode a Source and build render options for one embed.

    Occurrence metadata is re-detected from the current content so smart
    case matching follows the Source as it is now.
    """
    try:
        content = decode_node(source.get('content'))
    except (TypeError, ValueError) as e:
        raise PublishError(f"Source {source.get('id', '')} has invalid content: {e}") from e

    stored_definitions = decode_definitions(source.get('variables'))
    if stored_definitions:
        definitions = merge_occurrences(stored_definitions, detect_variable_occurrences(content))
    else:
        definitions = detect_variables(content)

    options = RenderOptions(
        variable_values=settings['variable_values'],
        toggle_states=settings['toggle_states'],
        custom_insertions=decode_insertions(settings['custom_insertions']),
        internal_notes=decode_notes(settings['internal_notes']),
        definitions=definitions,
    )
    return content, options


# ============================================================
# Publisher
# ============================================================

class ChapterPublisher:
    """
    Read-modify-write cycle against one host page.

    The page body is only ever written as a whole, computed in memory from
    the fetched body. A version conflict re-fetches the page and recomputes
    the splice, up to `max_retries` times.
    """

    def __init__(self, client: ConfluenceClient, store: EmbedStore, page_id: str,
                 max_retries: Optional[int] = None, verbose: bool = False):
        self.client = client
        self.store = store
        self.page_id = page_id
        self.max_retries = get_max_retries() if max_retries is None else max(0, max_retries)
        self.verbose = verbose

    def _log(self, message: str):
        if self.verbose:
            print(f"  [Publish] {message}")

    def _load_source(self, source_id: str) -> Dict[str, Any]:
        source = self.store.get(source_key(source_id))
        if not source:
            raise PublishError(f"Source not found: {source_id}")
        return source

    def _load_record(self, local_id: str) -> Dict[str, Any]:
        return dict(self.store.get(embed_key(local_id)) or {})

    def _write_page(self, mutate: Callable[[str], Optional[str]],
                    message: str) -> Tuple[PageSnapshot, Optional[int]]:
        """
        Fetch, mutate and update the page, retrying on version conflicts.

        `mutate` returns the new body, or None when no write is needed.

        Returns:
            (snapshot written against, new version or None when nothing was written)
        """
        attempt = 0
        while True:
            snapshot = self.client.fetch_page(self.page_id)
            new_body = mutate(snapshot.body)
            if new_body is None:
                return snapshot, None
            try:
                return snapshot, self.client.update_page(snapshot, sanitize_xml_string(new_body), message)
            except VersionConflict:
                if attempt >= self.max_retries:
                    raise
                attempt += 1
                self._log(f"Version conflict on v{snapshot.version + 1}, retrying ({attempt}/{self.max_retries})")

    # ------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------

    def render_adf(self, request: PublishRequest) -> Node:
        """Render a request's Source content with its effective settings (no conversion)"""
        source = self._load_source(request.source_id)
        settings = resolve_settings(request, self._load_record(request.local_id))
        content, options = source_render_inputs(source, settings)
        return render_source_content(content, options, verbose=self.verbose)

    def render_ghost_text(self, request: PublishRequest, as_text: bool = True) -> str:
        """Render with disabled toggles kept (tagged) for review; text diff form or ADF JSON"""
        source = self._load_source(request.source_id)
        settings = resolve_settings(request, self._load_record(request.local_id))
        content, options = source_render_inputs(source, settings)
        ghost = render_with_ghosts(content, options.variable_values, options.toggle_states,
                                   options.definitions)
        if as_text:
            return extract_text_with_toggle_markers(ghost, options.toggle_states)
        return json.dumps(encode_node(ghost), ensure_ascii=False, indent=2)

    def prepare(self, request: PublishRequest) -> PreparedChapter:
        """
        Render and convert one request into chapter markup.

        Raises:
            PublishError: Source missing or invalid
            ConversionFailed: Conversion rejected or produced malformed markup
        """
        source = self._load_source(request.source_id)
        stored = self._load_record(request.local_id)
        settings = resolve_settings(request, stored)
        heading = request.heading or source.get('name') or 'Untitled Chapter'

        if settings['is_freeform']:
            self._log(f"{request.local_id}: freeform content ({len(settings['freeform_content'])} chars)")
            storage_content = None
            markup = build_freeform_chapter(request.local_id, heading, settings['freeform_content'],
                                            settings['compliance_level'])
        else:
            content, options = source_render_inputs(source, settings)
            rendered = render_source_content(content, options, verbose=self.verbose)
            storage_content = self.client.convert_to_storage(encode_node(rendered))
            error = check_well_formed(storage_content)
            if error:
                raise ConversionFailed(error)
            markup = build_chapter(request.local_id, heading, strip_leading_heading(storage_content),
                                   settings['compliance_level'], bool(source.get('bespoke', False)))

        record = dict(stored)
        record.update(settings)
        record.update({
            'chapter_id': stored.get('chapter_id') or chapter_id_for(request.local_id),
            'source_id': request.source_id,
            'published_content_hash': calculate_content_hash({
                'content': storage_content if storage_content is not None else settings['freeform_content'],
                'variable_values': settings['variable_values'],
                'toggle_states': settings['toggle_states'],
                'custom_insertions': settings['custom_insertions'],
                'internal_notes': settings['internal_notes'],
            }),
            'published_source_content_hash': source_content_hash(source),
        })
        self._log(f"{request.local_id}: prepared chapter '{format_text_preview(heading)}' ({len(markup)} chars)")
        return PreparedChapter(request=request, markup=markup,
                               source_name=source.get('name') or request.source_id, record=record)

    def _persist(self, prepared: PreparedChapter, version: int) -> Optional[str]:
        """
        Save the publish record for a chapter already written to the page.

        Returns:
            None on success, or an error message when the store write failed
        """
        record = dict(prepared.record)
        record['published_at'] = utc_timestamp()
        record['published_version'] = version
        try:
            self.store.set(embed_key(prepared.request.local_id), record)
        except (OSError, TypeError, ValueError) as e:
            message = f"Page updated to v{version} but publish record not saved: {e}"
            print(f"Error saving record for {prepared.request.local_id}: {e}", file=sys.stderr)
            return message
        return None

    def _published_result(self, prepared: PreparedChapter, version: int) -> PublishResult:
        local_id = prepared.request.local_id
        chapter_id = prepared.record['chapter_id']
        error = self._persist(prepared, version)
        if error:
            return PublishResult(success=False, local_id=local_id, error_message=error,
                                 chapter_id=chapter_id, page_version=version)
        return PublishResult(
            success=True,
            local_id=local_id,
            message='Chapter published successfully',
            chapter_id=chapter_id,
            page_version=version,
        )

    # ------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------

    def publish(self, request: PublishRequest) -> PublishResult:
        """Publish (or republish) one embed as a chapter of the page"""
        try:
            prepared = self.prepare(request)
            _, version = self._write_page(
                lambda body: merge_chapter(body, request.local_id, prepared.markup),
                f'Standard embed: Published "{prepared.source_name}"',
            )
        except Exception as e:
            print(f"Error publishing {request.local_id}: {e}", file=sys.stderr)
            return PublishResult(success=False, local_id=request.local_id, error_message=str(e))

        self._log(f"{request.local_id}: published as v{version}")
        return self._published_result(prepared, version)

    def inject_placeholder(self, local_id: str, heading: Optional[str] = None,
                           source_id: Optional[str] = None) -> PublishResult:
        """Append an "under construction" chapter unless one already exists"""
        chapter_id = chapter_id_for(local_id)

        def mutate(body: str) -> Optional[str]:
            if chapter_exists(body, local_id):
                return None
            placeholder = build_placeholder(local_id, heading or 'New Chapter', PLACEHOLDER_COMPLIANCE_LEVEL)
            return append_chapter(body, placeholder)

        try:
            _, version = self._write_page(mutate, 'Standard embed: Added chapter placeholder')
        except HostError as e:
            print(f"Error injecting placeholder {local_id}: {e}", file=sys.stderr)
            return PublishResult(success=False, local_id=local_id, error_message=str(e))

        if version is None:
            self._log(f"{local_id}: chapter already exists")
            return PublishResult(success=True, local_id=local_id, message='Chapter already exists',
                                 chapter_id=chapter_id)

        record = self._load_record(local_id)
        record['chapter_id'] = chapter_id
        if source_id or record.get('source_id'):
            record['source_id'] = source_id or record.get('source_id')
        self.store.set(embed_key(local_id), record)
        return PublishResult(success=True, local_id=local_id, message='Placeholder injected',
                             chapter_id=chapter_id, page_version=version)

    def remove(self, identifier: str) -> PublishResult:
        """Remove a chapter region; a chapter that is not present counts as removed"""
        local_id = local_id_from(identifier)
        try:
            _, version = self._write_page(
                lambda body: remove_chapter(body, local_id),
                'Standard embed: Removed chapter',
            )
        except HostError as e:
            print(f"Error removing {local_id}: {e}", file=sys.stderr)
            return PublishResult(success=False, local_id=local_id, error_message=str(e))

        if version is None:
            return PublishResult(success=True, local_id=local_id,
                                 message='Chapter not found (already removed)')
        return PublishResult(success=True, local_id=local_id, message='Chapter removed',
                             chapter_id=chapter_id_for(local_id), page_version=version)

    def bulk_publish(self, requests: List[PublishRequest]) -> List[PublishResult]:
        """
        Publish several embeds with a single page write.

        Each request is rendered independently; failures are reported per
        item and do not block the others. Records are persisted only after
        the page write succeeds.
        """
        results: Dict[str, PublishResult] = {}
        prepared: List[PreparedChapter] = []
        for request in requests:
            try:
                prepared.append(self.prepare(request))
            except Exception as e:
                print(f"Error preparing {request.local_id}: {e}", file=sys.stderr)
                results[request.local_id] = PublishResult(success=False, local_id=request.local_id,
                                                          error_message=str(e))

        if prepared:
            def mutate(body: str) -> str:
                for item in prepared:
                    body = merge_chapter(body, item.request.local_id, item.markup)
                return body

            try:
                _, version = self._write_page(mutate, f'Standard embed: Published {len(prepared)} chapter(s)')
            except HostError as e:
                print(f"Error updating page {self.page_id}: {e}", file=sys.stderr)
                for item in prepared:
                    results[item.request.local_id] = PublishResult(
                        success=False, local_id=item.request.local_id, error_message=str(e))
            else:
                for item in prepared:
                    results[item.request.local_id] = self._published_result(item, version)

        return [results[request.local_id] for request in requests]

    def list_chapters(self) -> List[Tuple[str, Optional[str]]]:
        """
        List the chapters found in the page.

        Returns:
            [(local_id, heading text or None), ...] in page order
        """
        body = self.client.fetch_page(self.page_id).body
        chapters = []
        for local_id in enumerate_chapters(body):
            region = locate(body, local_id)
            chapters.append((local_id, chapter_heading_text(region.raw_text) if region else None))
        return chapters

    def is_stale(self, local_id: str) -> bool:
        """True when the Source changed since this embed was last published"""
        record = self._load_record(local_id)
        if not record.get('published_at') or not record.get('source_id'):
            return False
        source = self.store.get(source_key(record['source_id']))
        if not source:
            return False
        return record.get('published_source_content_hash') != source_content_hash(source)

    def publish_status(self, local_id: str) -> Dict[str, Any]:
        record = self._load_record(local_id)
        return {
            'is_published': bool(record.get('published_at')),
            'published_at': record.get('published_at'),
            'published_content_hash': record.get('published_content_hash'),
            'published_version': record.get('published_version'),
            'chapter_id': record.get('chapter_id'),
            'is_stale': self.is_stale(local_id),
        }


# ============================================================
# Command Line
# ============================================================

def _load_requests(path: str) -> List[PublishRequest]:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = [data]
    return [PublishRequest.from_dict(item) for item in data]


def _print_results(results: List[PublishResult]) -> int:
    fail_count = sum(1 for r in results if not r.success)
    if fail_count > 0:
        print("\nFailed items:")
        for r in results:
            if not r.success:
                print(f"  - [{r.local_id}] {r.error_message}")
    print("-" * 50)
    print(f"Completed: {len(results) - fail_count} succeeded, {fail_count} failed")
    return 1 if fail_count else 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Render Standard embeds and publish them into host pages"
    )
    parser.add_argument('--store', help='Store file (default: $STANDARD_EMBED_STORE)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')
    sub = parser.add_subparsers(dest='command', required=True)

    render_p = sub.add_parser('render', help='Render an embed locally and print ADF or text')
    render_p.add_argument('local_id')
    render_p.add_argument('source_id')
    render_p.add_argument('--values', type=json.loads, help='Variable values (JSON object)')
    render_p.add_argument('--toggles', type=json.loads, help='Toggle states (JSON object)')
    render_p.add_argument('--ghost', action='store_true', help='Keep disabled toggles, tagged')
    render_p.add_argument('--text', action='store_true', help='Print text with toggle markers')

    publish_p = sub.add_parser('publish', help='Publish one embed, or a batch from a JSON file')
    publish_p.add_argument('--page-id', required=True)
    publish_p.add_argument('--local-id')
    publish_p.add_argument('--source-id')
    publish_p.add_argument('--heading')
    publish_p.add_argument('--values', type=json.loads, help='Variable values (JSON object)')
    publish_p.add_argument('--toggles', type=json.loads, help='Toggle states (JSON object)')
    publish_p.add_argument('--compliance', help='Compliance level (standard, bespoke, ...)')
    publish_p.add_argument('--freeform-file', help='Publish this text file as freeform content')
    publish_p.add_argument('--batch', help='JSON file with a list of publish requests')

    placeholder_p = sub.add_parser('placeholder', help='Inject an under-construction chapter')
    placeholder_p.add_argument('--page-id', required=True)
    placeholder_p.add_argument('local_id')
    placeholder_p.add_argument('--heading')
    placeholder_p.add_argument('--source-id')

    remove_p = sub.add_parser('remove', help='Remove a chapter from a page')
    remove_p.add_argument('--page-id', required=True)
    remove_p.add_argument('local_id', help='Local id or chapter id')

    list_p = sub.add_parser('list', help='List chapter local ids found in a page')
    list_p.add_argument('--page-id', required=True)

    status_p = sub.add_parser('status', help='Show publish status and staleness')
    status_p.add_argument('local_id')

    args = parser.parse_args()

    try:
        store = JsonFileStore(get_store_path(args.store))

        if args.command == 'status':
            publisher = ChapterPublisher(None, store, page_id='', verbose=args.verbose)
            print(json.dumps(publisher.publish_status(args.local_id), indent=2))
            return 0

        if args.command == 'render':
            publisher = ChapterPublisher(None, store, page_id='', verbose=args.verbose)
            request = PublishRequest(local_id=args.local_id, source_id=args.source_id,
                                     variable_values=args.values, toggle_states=args.toggles)
            if args.ghost or args.text:
                print(publisher.render_ghost_text(request, as_text=args.text))
            else:
                print(json.dumps(encode_node(publisher.render_adf(request)), ensure_ascii=False, indent=2))
            return 0

        with create_client_from_env(verbose=args.verbose) as client:
            publisher = ChapterPublisher(client, store, args.page_id, verbose=args.verbose)

            if args.command == 'list':
                for local_id, heading in publisher.list_chapters():
                    print(f"{local_id}\t{heading or '(no heading)'}")
                return 0

            if args.command == 'placeholder':
                return _print_results([publisher.inject_placeholder(args.local_id, args.heading, args.source_id)])

            if args.command == 'remove':
                result = publisher.remove(args.local_id)
                if result.success:
                    print(result.message)
                return _print_results([result])

            if args.batch:
                requests = _load_requests(args.batch)
                print(f"Publishing {len(requests)} chapter(s) to page {args.page_id}")
                return _print_results(publisher.bulk_publish(requests))

            if not args.local_id or not args.source_id:
                parser.error("publish requires --local-id and --source-id (or --batch)")
            freeform = None
            if args.freeform_file:
                with open(args.freeform_file, 'r', encoding='utf-8') as f:
                    freeform = f.read()
            request = PublishRequest(
                local_id=args.local_id,
                source_id=args.source_id,
                heading=args.heading,
                variable_values=args.values,
                toggle_states=args.toggles,
                compliance_level=args.compliance,
                is_freeform=True if freeform is not None else None,
                freeform_content=freeform,
            )
            return _print_results([publisher.publish(request)])

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
