"""Tests for the completion client's error mapping."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import anthropic
import httpx
import pytest

import completion
from errors import CompletionServiceError, MalformedCompletion

_REQUEST = httpx.Request('POST', 'https://api.anthropic.com/v1/messages')


def _client(create):
    return SimpleNamespace(messages=SimpleNamespace(create=create))


@pytest.fixture
def use_client(monkeypatch):
    def _use(create):
        monkeypatch.setattr(completion, 'get_client', lambda: _client(create))
        return create
    return _use


def test_returns_first_text_block(use_client):
    message = SimpleNamespace(
        content=[SimpleNamespace(type='text', text='{"routeName": "x"}')],
        stop_reason='end_turn',
    )
    create = use_client(AsyncMock(return_value=message))

    text = asyncio.run(completion.request_completion('prompt'))

    assert text == '{"routeName": "x"}'
    kwargs = create.await_args.kwargs
    assert kwargs['model'] == completion.COMPLETION_MODEL
    assert kwargs['max_tokens'] == completion.COMPLETION_MAX_TOKENS
    assert kwargs['messages'] == [{'role': 'user', 'content': 'prompt'}]


def test_empty_content_returns_empty_text(use_client):
    use_client(AsyncMock(return_value=SimpleNamespace(content=[], stop_reason='end_turn')))
    assert asyncio.run(completion.request_completion('prompt')) == ''


def test_status_error_maps_to_service_error(use_client):
    response = httpx.Response(529, request=_REQUEST, text='{"error": "overloaded"}')
    error = anthropic.APIStatusError('overloaded', response=response, body=None)
    use_client(AsyncMock(side_effect=error))

    with pytest.raises(CompletionServiceError) as exc_info:
        asyncio.run(completion.request_completion('prompt'))

    assert exc_info.value.status_code == 529
    assert 'overloaded' in exc_info.value.body


def test_connection_error_maps_to_service_error(use_client):
    use_client(AsyncMock(side_effect=anthropic.APIConnectionError(request=_REQUEST)))

    with pytest.raises(CompletionServiceError) as exc_info:
        asyncio.run(completion.request_completion('prompt'))

    assert exc_info.value.status_code is None


def test_timeout_maps_to_malformed_completion(use_client):
    use_client(AsyncMock(side_effect=anthropic.APITimeoutError(request=_REQUEST)))

    with pytest.raises(MalformedCompletion) as exc_info:
        asyncio.run(completion.request_completion('prompt'))

    assert exc_info.value.raw_text == ''
    assert 'timed out' in exc_info.value.reason
