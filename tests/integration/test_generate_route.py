"""Integration tests for POST /generate with the completion call mocked out."""

import json
from unittest.mock import AsyncMock

import pytest

import generator
from errors import CompletionServiceError
from tests.conftest import PRAGUE_ITINERARY, PRAGUE_REQUEST, XHR


@pytest.fixture
def completion_reply(monkeypatch):
    def _reply(value=None, side_effect=None):
        mock = AsyncMock(return_value=value, side_effect=side_effect)
        monkeypatch.setattr(generator, 'request_completion', mock)
        return mock
    return _reply


def test_generate_returns_itinerary(client, completion_reply):
    completion_reply('```json\n' + json.dumps(PRAGUE_ITINERARY) + '\n```')

    resp = client.post('/generate', headers=XHR, json=PRAGUE_REQUEST)

    assert resp.status_code == 200
    assert resp.json()['request'] == {**PRAGUE_REQUEST, 'duration': 2.0}
    body = resp.json()['itinerary']
    assert body['routeName'] == 'Old Town Architecture Walk'
    assert body['difficulty'] == 'Easy'
    assert [s['number'] for s in body['stops']] == [1, 2, 3, 4, 5]
    assert body['stops'][0]['walkToNext'] == '3 minutes'
    assert generator._in_flight == set()


def test_missing_city_is_rejected_without_calling_the_model(client, completion_reply):
    mock = completion_reply('{}')

    resp = client.post('/generate', headers=XHR, json={'interests': 'history'})

    assert resp.status_code == 400
    assert resp.json() == {'error': 'City and interests are required'}
    mock.assert_not_awaited()


def test_unknown_fitness_is_bad_request(client, completion_reply):
    completion_reply('{}')
    resp = client.post('/generate', headers=XHR, json={**PRAGUE_REQUEST, 'fitness': 'extreme'})
    assert resp.status_code == 400
    assert resp.json()['error'].startswith('fitness:')


def test_malformed_reply_is_generic_500(client, completion_reply):
    completion_reply('Sorry, here is a lovely walk through Prague...')

    resp = client.post('/generate', headers=XHR, json=PRAGUE_REQUEST)

    assert resp.status_code == 500
    assert resp.json() == {'error': 'Failed to generate route. Please try again.'}


def test_service_error_is_generic_500(client, completion_reply):
    completion_reply(side_effect=CompletionServiceError(529, 'overloaded'))

    resp = client.post('/generate', headers=XHR, json=PRAGUE_REQUEST)

    assert resp.status_code == 500
    assert resp.json() == {'error': 'Failed to generate route. Please try again.'}
    assert generator._in_flight == set()


def test_second_generation_while_busy_is_conflict(client, completion_reply):
    completion_reply(json.dumps(PRAGUE_ITINERARY))
    user_id = client.get('/auth/me').json()['user']['id']
    generator._in_flight.add(user_id)

    resp = client.post('/generate', headers=XHR, json=PRAGUE_REQUEST)

    assert resp.status_code == 409


def test_generated_payload_saves_as_is(client, completion_reply):
    completion_reply(json.dumps(PRAGUE_ITINERARY))
    generated = client.post('/generate', headers=XHR, json=PRAGUE_REQUEST).json()

    resp = client.post('/routes', headers=XHR, json=generated)

    assert resp.status_code == 201
    saved = resp.json()['route']
    assert saved['city'] == 'Prague'
    assert saved['interests'] == 'architecture, history'
    assert saved['fitness_level'] == 'easy'
    assert [s['stop_number'] for s in saved['stops']] == [1, 2, 3, 4, 5]
