"""Tests for the generation pipeline and the per-user busy flag."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

import generator
from errors import MalformedCompletion, ValidationError
from schemas import GenerateRequest
from tests.conftest import PRAGUE_ITINERARY, PRAGUE_REQUEST


def test_generate_itinerary_happy_path(monkeypatch):
    fake = AsyncMock(return_value='```json\n' + json.dumps(PRAGUE_ITINERARY) + '\n```')
    monkeypatch.setattr(generator, 'request_completion', fake)

    itinerary = asyncio.run(generator.generate_itinerary(GenerateRequest(**PRAGUE_REQUEST)))

    assert itinerary.route_name == 'Old Town Architecture Walk'
    assert len(itinerary.stops) == 5
    prompt = fake.await_args.args[0]
    assert 'City: Prague' in prompt
    assert 'Includes 4-6 interesting stops' in prompt


@pytest.mark.parametrize('fields', [
    {'city': '', 'interests': 'history'},
    {'city': 'Prague', 'interests': '   '},
    {'interests': 'history'},
])
def test_missing_inputs_fail_before_any_request(monkeypatch, fields):
    fake = AsyncMock()
    monkeypatch.setattr(generator, 'request_completion', fake)

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(generator.generate_itinerary(GenerateRequest(**fields)))

    assert exc_info.value.user_message == 'City and interests are required'
    fake.assert_not_awaited()


def test_malformed_reply_propagates(monkeypatch):
    monkeypatch.setattr(generator, 'request_completion', AsyncMock(return_value='I cannot help'))

    with pytest.raises(MalformedCompletion):
        asyncio.run(generator.generate_itinerary(GenerateRequest(**PRAGUE_REQUEST)))


def test_generation_slot_is_exclusive_per_user():
    async def scenario():
        async with generator.generation_slot(1):
            with pytest.raises(generator.GenerationInProgress):
                async with generator.generation_slot(1):
                    pass
            async with generator.generation_slot(2):
                pass
        async with generator.generation_slot(1):
            pass

    asyncio.run(scenario())
    assert generator._in_flight == set()


def test_generation_slot_released_on_error():
    async def scenario():
        async with generator.generation_slot(3):
            raise RuntimeError('boom')

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())
    assert 3 not in generator._in_flight
