"""Tests for generation prompt assembly."""

import pytest

from prompts import TERRAIN_BY_FITNESS, compile_prompt, stop_range
from schemas import GenerateRequest


def _request(**overrides):
    fields = {'city': 'Prague', 'interests': 'architecture, history', 'fitness': 'easy', 'duration': 2}
    fields.update(overrides)
    return GenerateRequest(**fields)


def test_prompt_contains_request_fields():
    prompt = compile_prompt(_request())

    assert 'City: Prague' in prompt
    assert 'Interests: architecture, history' in prompt
    assert 'Fitness Level: easy' in prompt
    assert 'Duration: 2 hours' in prompt


def test_short_tour_asks_for_four_to_six_stops():
    prompt = compile_prompt(_request(duration=2))
    assert 'Includes 4-6 interesting stops' in prompt
    assert '6-8' not in prompt


@pytest.mark.parametrize('duration', [3, 4.5, 8])
def test_long_tour_asks_for_six_to_eight_stops(duration):
    assert stop_range(duration) == '6-8'
    assert 'Includes 6-8 interesting stops' in compile_prompt(_request(duration=duration))


def test_fractional_duration_is_not_padded():
    assert 'Duration: 1.5 hours' in compile_prompt(_request(duration=1.5))


def test_terrain_rules_cover_every_fitness_level():
    prompt = compile_prompt(_request())
    for level, terrain in TERRAIN_BY_FITNESS.items():
        assert f'{level} = {terrain}' in prompt


def test_prompt_demands_json_only_with_coordinates():
    prompt = compile_prompt(_request())
    assert '"routeName"' in prompt
    assert '"walkToNext"' in prompt
    assert '"latitude"' in prompt
    assert 'Use real coordinates from Prague' in prompt
    assert prompt.rstrip().endswith('Your entire response must be a single JSON object.')
