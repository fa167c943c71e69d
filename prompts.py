"""
prompts.py — Builds the walking-tour generation prompt.

The caller must have validated the request already (GenerateRequest.require_inputs);
nothing here checks for empty city or interests.
"""

from schemas import GenerateRequest

# Duration threshold (hours) at which a tour gets the longer stop range
LONG_TOUR_HOURS = 3

STOP_RANGE_LONG  = '6-8'
STOP_RANGE_SHORT = '4-6'

TERRAIN_BY_FITNESS = {
    'easy':        'flat, short distances',
    'moderate':    'some hills, reasonable distances',
    'challenging': 'hills ok, longer distances',
}


def stop_range(duration_hours: float) -> str:
    return STOP_RANGE_LONG if duration_hours >= LONG_TOUR_HOURS else STOP_RANGE_SHORT


def _format_hours(duration_hours: float) -> str:
    """2.0 -> '2', 1.5 -> '1.5'."""
    return f'{duration_hours:g}'


def compile_prompt(request: GenerateRequest) -> str:
    """Return the single user-turn instruction for the completion service."""
    terrain_rules = '; '.join(f'{level} = {terrain}' for level, terrain in TERRAIN_BY_FITNESS.items())

    return f"""You are an expert local guide creating a perfect walking tour. Generate a detailed walking route for the following request:

City: {request.city}
Interests: {request.interests}
Fitness Level: {request.fitness}
Duration: {_format_hours(request.duration)} hours

Create a walking route that:
1. Starts and ends at convenient, accessible locations
2. Flows naturally from point to point
3. Includes {stop_range(request.duration)} interesting stops
4. Matches the fitness level ({terrain_rules})
5. Focuses on the specified interests

CRITICAL: You must respond with ONLY valid JSON. Do not include any text outside the JSON structure, including markdown code blocks or backticks.

Format your response as a JSON object with this EXACT structure:
{{
  "routeName": "A catchy name for this route",
  "totalDistance": "X.X km",
  "estimatedTime": "X hours X minutes",
  "difficulty": "Easy/Moderate/Challenging",
  "overview": "A brief 2-3 sentence overview of what makes this route special",
  "stops": [
    {{
      "number": 1,
      "name": "Stop name",
      "description": "2-3 sentences about this location and why it's interesting",
      "duration": "X minutes",
      "walkToNext": "X minutes walk (omit for the last stop)",
      "address": "Full street address of this location",
      "latitude": 50.0875,
      "longitude": 14.4213
    }}
  ],
  "tips": [
    "Practical tip 1",
    "Practical tip 2",
    "Practical tip 3"
  ]
}}

IMPORTANT: Include accurate latitude and longitude coordinates for each stop. Use real coordinates from {request.city}.

DO NOT OUTPUT ANYTHING OTHER THAN VALID JSON. Your entire response must be a single JSON object."""
