"""
rendering.py — Map markers and the printable route document.

A stop gets a map marker (and a coordinate-based maps link) only when both
latitude and longitude are present; otherwise the address, then the name, is
used for the link and no marker is emitted.
"""

from datetime import datetime
from html import escape
from urllib.parse import quote_plus


def has_coordinates(stop) -> bool:
    return stop.latitude is not None and stop.longitude is not None


def create_directions_link(stop) -> str:
    return f'https://www.google.com/maps/dir/?api=1&destination={stop.latitude},{stop.longitude}'


def map_markers(stops) -> list:
    """Marker payload for the frontend map: one entry per stop with both coordinates."""
    return [
        {
            'stop_number':    stop.stop_number,
            'name':           stop.name,
            'latitude':       stop.latitude,
            'longitude':      stop.longitude,
            'directions_url': create_directions_link(stop),
        }
        for stop in stops
        if has_coordinates(stop)
    ]


def map_center(stops):
    """Average of all marker positions, or None when no stop has coordinates."""
    located = [s for s in stops if has_coordinates(s)]
    if not located:
        return None
    return {
        'latitude':  sum(s.latitude for s in located) / len(located),
        'longitude': sum(s.longitude for s in located) / len(located),
    }


def create_google_maps_link(stop, city=None) -> str:
    if has_coordinates(stop):
        return f'https://www.google.com/maps/search/?api=1&query={stop.latitude},{stop.longitude}'
    if stop.address:
        return f'https://www.google.com/maps/search/?api=1&query={quote_plus(stop.address)}'
    query = f'{stop.name}, {city}' if city else stop.name
    return f'https://www.google.com/maps/search/?api=1&query={quote_plus(query)}'


def _e(value, fallback=''):
    return escape(str(value)) if value else fallback


def _stop_html(stop, city, is_last):
    walk = ''
    if stop.walk_to_next and not is_last:
        walk = f'<div class="walk">&darr; {_e(stop.walk_to_next)} to the next stop</div>'
    address = f'<div class="address">{_e(stop.address)}</div>' if stop.address else ''
    return f"""
        <section class="stop">
            <div class="stop-head">
                <span class="stop-number">{stop.stop_number}</span>
                <h2>{_e(stop.name)}</h2>
                <span class="stop-duration">{_e(stop.duration)}</span>
            </div>
            {address}
            <p>{_e(stop.description)}</p>
            <div class="maps-link">{escape(create_google_maps_link(stop, city))}</div>
            {walk}
        </section>"""


def render_print_html(route, stops, auto_print=True) -> str:
    """Standalone HTML document for print / save-as-PDF from the browser."""
    generated_date = datetime.now().strftime('%B %d, %Y')
    created = route.created_at.strftime('%B %d, %Y') if route.created_at else 'N/A'
    stops = list(stops)
    stops_html = ''.join(
        _stop_html(stop, route.city, i == len(stops) - 1) for i, stop in enumerate(stops)
    )
    tips_html = ''.join(f'<li>{_e(tip)}</li>' for tip in (route.tips or []) if tip)
    tips_section = (
        f'<section class="tips"><h3>Tips</h3><ul>{tips_html}</ul></section>'
        if tips_html else ''
    )
    print_script = (
        '<script>window.addEventListener("load", function () { setTimeout(window.print, 500); });</script>'
        if auto_print else ''
    )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{_e(route.route_name)} &mdash; {_e(route.city)}</title>
    <style>
        *, *::before, *::after {{ margin: 0; padding: 0; box-sizing: border-box; }}
        body {{ font-family: Georgia, 'Times New Roman', serif; color: #1f2937; max-width: 780px; margin: 0 auto; padding: 32px; }}
        header {{ border-bottom: 2px solid #4f46e5; padding-bottom: 16px; margin-bottom: 24px; }}
        h1 {{ font-size: 28px; color: #312e81; margin-bottom: 8px; }}
        .meta {{ font-family: Arial, sans-serif; font-size: 13px; color: #4b5563; }}
        .meta span {{ margin-right: 16px; }}
        .overview {{ margin: 16px 0 24px; line-height: 1.5; }}
        .stop {{ border-left: 3px solid #c7d2fe; padding: 0 0 16px 16px; margin-bottom: 8px; page-break-inside: avoid; }}
        .stop-head {{ display: flex; align-items: baseline; gap: 10px; }}
        .stop-number {{ font-family: Arial, sans-serif; font-weight: bold; background: #4f46e5; color: #fff; border-radius: 50%; width: 26px; height: 26px; display: inline-flex; align-items: center; justify-content: center; font-size: 13px; }}
        .stop h2 {{ font-size: 18px; flex: 1; }}
        .stop-duration, .address, .maps-link, .walk {{ font-family: Arial, sans-serif; font-size: 12px; color: #6b7280; }}
        .stop p {{ margin: 6px 0; line-height: 1.45; }}
        .maps-link {{ word-break: break-all; }}
        .walk {{ margin-top: 6px; font-style: italic; }}
        .tips {{ margin-top: 24px; page-break-inside: avoid; }}
        .tips ul {{ margin-left: 20px; line-height: 1.5; }}
        footer {{ margin-top: 32px; font-family: Arial, sans-serif; font-size: 11px; color: #9ca3af; }}
        @media print {{ body {{ padding: 0; }} }}
    </style>
</head>
<body>
    <header>
        <h1>{_e(route.route_name)}</h1>
        <div class="meta">
            <span>{_e(route.city)}</span>
            <span>Distance: {_e(route.total_distance, 'N/A')}</span>
            <span>Time: {_e(route.estimated_time, 'N/A')}</span>
            <span>Difficulty: {_e(route.difficulty, 'N/A')}</span>
            <span>Generated: {created}</span>
        </div>
    </header>
    <p class="overview">{_e(route.overview)}</p>
    {stops_html}
    {tips_section}
    <footer>Generated by Wanderwise on {generated_date}</footer>
    {print_script}
</body>
</html>"""
