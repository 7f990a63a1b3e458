"""Tests for the aiohttp provider adapters against a local test server."""

import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from nevra.constants import EndpointFamily, FailureKind, HistoryRole
from nevra.services.gateway import (
    Deadline,
    GenerationRequest,
    HistoryTurn,
    OpenRouterAdapter,
    ProviderRegistry,
    PuterAdapter,
    UpstreamCall,
    UpstreamClient,
)

pytestmark = [pytest.mark.unit]


def _call(provider='deepseek', images=(), history=()):
    registry = ProviderRegistry.from_config({'OPENROUTER_API_KEY': 'test-key'})
    request = GenerationRequest(prompt='Make a button', provider=provider, images=images, history=history)
    return UpstreamCall(
        profile=registry.profile_for(provider),
        request=request,
        system_prompt='You build apps.',
        history=request.history,
        max_tokens=1024,
        temperature=0.3,
    )


def _server(path, responder, seen):
    async def handler(request):
        seen.append({'headers': dict(request.headers), 'json': await request.json()})
        return await responder(request)

    app = web.Application()
    app.router.add_post(path, handler)
    return TestServer(app)


def _base_url(server):
    return str(server.make_url('')).rstrip('/')


def _openrouter(server):
    return OpenRouterAdapter(_base_url(server), 'test-key', 'https://nevra.test', 'Nevra Test')


@pytest.mark.asyncio
async def test_openrouter_success_and_request_shape():
    seen = []

    async def ok(request):
        return web.json_response({'choices': [{'message': {'content': '<html>done</html>'}}]})

    history = (HistoryTurn(HistoryRole.USER, 'hi'), HistoryTurn(HistoryRole.ASSISTANT, 'hello'))
    async with _server('/chat/completions', ok, seen) as server:
        outcome = await _openrouter(server).send(_call(history=history), Deadline(5))

    assert outcome.succeeded
    assert outcome.content == '<html>done</html>'
    assert outcome.http_status == 200

    sent = seen[0]
    assert sent['headers']['Authorization'] == 'Bearer test-key'
    assert sent['headers']['HTTP-Referer'] == 'https://nevra.test'
    assert sent['headers']['X-Title'] == 'Nevra Test'
    body = sent['json']
    assert body['model'] == 'mistralai/devstral-2512:free'
    assert body['max_tokens'] == 1024
    assert body['temperature'] == 0.3
    assert body['top_p'] == 0.9
    assert [m['role'] for m in body['messages']] == ['system', 'user', 'assistant', 'user']
    assert body['messages'][0]['content'] == 'You build apps.'
    assert 'Make a button' in body['messages'][-1]['content']


@pytest.mark.asyncio
async def test_images_sent_as_content_parts():
    seen = []

    async def ok(request):
        return web.json_response({'choices': [{'message': {'content': 'ok'}}]})

    async with _server('/chat/completions', ok, seen) as server:
        await _openrouter(server).send(_call(images=('data:image/png;base64,AAA',)), Deadline(5))

    parts = seen[0]['json']['messages'][-1]['content']
    assert parts[0]['type'] == 'text'
    assert parts[1] == {'type': 'image_url', 'image_url': {'url': 'data:image/png;base64,AAA'}}


@pytest.mark.asyncio
async def test_error_status_is_classified():
    async def broke(request):
        return web.json_response(
            {'error': {'message': 'This request requires more credits'}}, status=402
        )

    async with _server('/chat/completions', broke, []) as server:
        outcome = await _openrouter(server).send(_call(), Deadline(5))

    assert not outcome.succeeded
    assert outcome.failure_kind == FailureKind.QUOTA_EXCEEDED
    assert outcome.http_status == 402
    assert 'credits' in outcome.diagnostic


@pytest.mark.asyncio
async def test_plain_text_error_body():
    async def broke(request):
        return web.Response(text='Bad gateway upstream', status=502)

    async with _server('/chat/completions', broke, []) as server:
        outcome = await _openrouter(server).send(_call(), Deadline(5))

    assert outcome.failure_kind == FailureKind.UPSTREAM
    assert outcome.http_status == 502
    assert outcome.diagnostic == 'Bad gateway upstream'


@pytest.mark.asyncio
async def test_error_wrapped_in_200_envelope():
    async def wrapped(request):
        return web.json_response({'error': {'message': 'Prompt tokens limit exceeded'}})

    async with _server('/chat/completions', wrapped, []) as server:
        outcome = await _openrouter(server).send(_call(), Deadline(5))

    assert not outcome.succeeded
    assert outcome.failure_kind == FailureKind.PROMPT_TOO_LARGE


@pytest.mark.asyncio
async def test_missing_content_is_empty_success():
    async def empty(request):
        return web.json_response({'choices': [{'message': {}}]})

    async with _server('/chat/completions', empty, []) as server:
        outcome = await _openrouter(server).send(_call(), Deadline(5))

    # the dispatcher turns empty text into an empty-response failure
    assert outcome.succeeded
    assert outcome.content == ''


@pytest.mark.asyncio
async def test_content_parts_are_joined_as_text():
    async def parts(request):
        return web.json_response({'choices': [{'message': {'content': [
            {'type': 'text', 'text': '<html>'},
            {'type': 'image_url', 'image_url': {'url': 'data:image/png;base64,AAA'}},
            {'type': 'text', 'text': 'hi</html>'},
        ]}}]})

    async with _server('/chat/completions', parts, []) as server:
        outcome = await _openrouter(server).send(_call(), Deadline(5))

    assert outcome.succeeded
    assert outcome.content == '<html>hi</html>'


@pytest.mark.asyncio
async def test_transport_timeout_from_deadline():
    async def slow(request):
        await asyncio.sleep(0.3)
        return web.json_response({'choices': [{'message': {'content': 'late'}}]})

    async with _server('/chat/completions', slow, []) as server:
        outcome = await _openrouter(server).send(_call(), Deadline(0.05))

    assert outcome.failure_kind == FailureKind.TIMEOUT
    assert outcome.http_status is None


@pytest.mark.asyncio
async def test_connection_refused_is_upstream():
    adapter = OpenRouterAdapter('http://127.0.0.1:9', 'k', 'https://nevra.test', 'Nevra')

    outcome = await adapter.send(_call(), Deadline(5))

    assert not outcome.succeeded
    assert outcome.failure_kind == FailureKind.UPSTREAM
    assert outcome.diagnostic.startswith('Network error')


@pytest.mark.asyncio
@pytest.mark.parametrize('body, expected', [
    ({'message': {'content': [{'text': 'from parts'}]}}, 'from parts'),
    ({'message': {'content': 'from string'}}, 'from string'),
    ({'output_text': 'from output_text'}, 'from output_text'),
    ({'response': 'from response'}, 'from response'),
    ({'choices': [{'message': {'content': 'from choices'}}]}, 'from choices'),
])
async def test_puter_response_shapes(body, expected):
    seen = []

    async def ok(request):
        return web.json_response(body)

    async with _server('/ai/chat', ok, seen) as server:
        outcome = await PuterAdapter(_base_url(server)).send(_call(provider='openai'), Deadline(5))

    assert outcome.content == expected
    assert seen[0]['json']['stream'] is False
    assert 'Authorization' not in seen[0]['headers']


def test_upstream_client_from_config():
    client = UpstreamClient.from_config({'OPENROUTER_API_KEY': ' key ', 'PUTER_API_BASE': 'http://puter.test/v1/'})

    openrouter = client.adapter_for(EndpointFamily.OPENROUTER)
    puter = client.adapter_for(EndpointFamily.PUTER)
    assert openrouter.api_key == 'key'
    assert openrouter.url == 'https://openrouter.ai/api/v1/chat/completions'
    assert puter.url == 'http://puter.test/v1/ai/chat'


def test_upstream_client_unknown_family():
    client = UpstreamClient({})

    with pytest.raises(LookupError):
        client.adapter_for(EndpointFamily.PUTER)
