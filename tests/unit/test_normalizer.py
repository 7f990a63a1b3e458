"""Tests for completion normalization into artifacts."""

import json

import pytest

from nevra.constants import FailureKind, FileKind, Framework
from nevra.services.normalizer import (
    FileEntry,
    MultiFile,
    SingleFile,
    extract_structured_object,
    normalize,
    select_entry_path,
)
from nevra.utils.errors import EmptyResponseError

pytestmark = [pytest.mark.unit]


def _manifest(files, **extra):
    return dict({'type': 'multi-file', 'files': files}, **extra)


NEXT_FILES = [
    {'path': 'package.json', 'content': '{}', 'type': 'config'},
    {'path': 'app/layout.tsx', 'content': 'layout', 'type': 'page'},
    {'path': 'app/page.tsx', 'content': 'page', 'type': 'page'},
    {'path': 'components/Button.tsx', 'content': 'button', 'type': 'component'},
]


def test_plain_html_is_single_file():
    raw = '<!DOCTYPE html><html><body>Hello</body></html>'

    artifact = normalize(raw)

    assert artifact == SingleFile(content=raw)


def test_fenced_manifest_picks_app_page_as_entry():
    raw = "Here is your project:\n```json\n" + json.dumps(_manifest(NEXT_FILES, framework='nextjs')) + "\n```\nEnjoy!"

    artifact = normalize(raw)

    assert isinstance(artifact, MultiFile)
    assert artifact.entry_path == 'app/page.tsx'
    assert artifact.framework == Framework.NEXTJS
    assert [entry.path for entry in artifact.files] == [f['path'] for f in NEXT_FILES]
    assert artifact.file('components/Button.tsx').kind == FileKind.COMPONENT


def test_untagged_fence_with_object_body():
    raw = "```\n" + json.dumps(_manifest([{'path': 'src/App.jsx', 'content': 'x'}])) + "\n```"

    artifact = normalize(raw)

    assert isinstance(artifact, MultiFile)
    assert artifact.entry_path == 'src/App.jsx'


def test_bare_json_manifest():
    raw = '  ' + json.dumps(_manifest([{'path': 'index.html', 'content': '<p/>'}])) + '\n'

    artifact = normalize(raw)

    assert isinstance(artifact, MultiFile)
    assert artifact.entry_path == 'index.html'


def test_declared_entry_wins_when_it_names_a_file():
    raw = json.dumps(_manifest(NEXT_FILES, entry='components/Button.tsx'))

    assert normalize(raw).entry_path == 'components/Button.tsx'


def test_declared_entry_ignored_when_missing():
    raw = json.dumps(_manifest(NEXT_FILES, entry='nowhere.tsx'))

    assert normalize(raw).entry_path == 'app/page.tsx'


def test_entry_defaults_to_first_file():
    files = [{'path': 'styles.css', 'content': 'a'}, {'path': 'lib/util.ts', 'content': 'b'}]

    assert normalize(json.dumps(_manifest(files))).entry_path == 'styles.css'


def test_invalid_entries_dropped_and_unknown_kind_is_other():
    files = [
        {'path': '', 'content': 'nope'},
        {'path': 'no-content.ts'},
        {'path': 'main.ts', 'content': '', 'type': 'weird'},
    ]

    artifact = normalize(json.dumps(_manifest(files)))

    assert [entry.path for entry in artifact.files] == ['main.ts']
    assert artifact.files[0].kind == FileKind.OTHER


def test_manifest_without_usable_files_is_single_file():
    raw = json.dumps(_manifest([{'path': '', 'content': 'x'}]))

    assert normalize(raw) == SingleFile(content=raw)


def test_non_manifest_json_is_single_file():
    raw = '{"hello": "world"}'

    assert normalize(raw) == SingleFile(content=raw)


def test_broken_json_is_single_file():
    raw = '```json\n{"type": "multi-file", "files": [\n```'

    assert normalize(raw) == SingleFile(content=raw)


@pytest.mark.parametrize('raw', ['', '   ', '\n\t', None])
def test_empty_input_raises(raw):
    with pytest.raises(EmptyResponseError) as exc_info:
        normalize(raw)

    assert exc_info.value.kind == FailureKind.EMPTY_RESPONSE


def test_single_file_is_idempotent():
    raw = '<html><body>twice</body></html>'

    once = normalize(raw)

    assert normalize(once.content) == once


def test_multi_file_entry_invariant():
    files = (FileEntry('a.ts', 'a'),)

    with pytest.raises(ValueError):
        MultiFile(files=files, entry_path='b.ts')
    with pytest.raises(ValueError):
        MultiFile(files=(), entry_path='a.ts')


def test_multi_file_to_dict():
    artifact = MultiFile(files=(FileEntry('index.html', '<p/>', FileKind.PAGE),), entry_path='index.html')

    assert artifact.to_dict() == {
        'type': 'multi-file',
        'framework': None,
        'files': [{'path': 'index.html', 'content': '<p/>', 'type': 'page'}],
        'entry': 'index.html',
    }


def test_select_entry_pattern_order():
    files = [FileEntry('src/index.ts', ''), FileEntry('src/main.ts', '')]

    # first matching file in file order, not pattern order
    assert select_entry_path(files) == 'src/index.ts'


def test_extract_prefers_json_fence_over_other_fences():
    text = "```html\n<p>{}</p>\n```\n```json\n{\"a\": 1}\n```"

    assert extract_structured_object(text) == {'a': 1}


def test_extract_returns_none_without_object():
    assert extract_structured_object('just prose') is None
    assert extract_structured_object('[1, 2, 3]') is None
    assert extract_structured_object(None) is None
