"""Tests for map markers, maps links and the print document."""

from datetime import datetime
from types import SimpleNamespace

from rendering import create_google_maps_link, map_center, map_markers, render_print_html


def _stop(n, name, lat=None, lng=None, address=None, walk='5 minutes'):
    return SimpleNamespace(stop_number=n, name=name, latitude=lat, longitude=lng,
                           address=address, description=f'About {name}',
                           duration='20 minutes', walk_to_next=walk)


def _route(**overrides):
    fields = dict(route_name='Old Town Walk', city='Prague', total_distance='3 km',
                  estimated_time='2 hours', difficulty='Easy', overview='A loop.',
                  tips=['Wear good shoes'], created_at=datetime(2024, 5, 1, 9, 30))
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_markers_only_for_stops_with_both_coordinates():
    stops = [
        _stop(1, 'Square', 50.0875, 14.4213),
        _stop(2, 'Clock', 50.0870, None),
        _stop(3, 'Bridge', None, None, address='Karlův most'),
        _stop(4, 'Castle', 50.0909, 14.4005),
    ]

    markers = map_markers(stops)

    assert [m['stop_number'] for m in markers] == [1, 4]
    assert markers[0] == {
        'stop_number': 1, 'name': 'Square', 'latitude': 50.0875, 'longitude': 14.4213,
        'directions_url': 'https://www.google.com/maps/dir/?api=1&destination=50.0875,14.4213',
    }


def test_zero_coordinates_still_count():
    assert len(map_markers([_stop(1, 'Null Island', 0.0, 0.0)])) == 1


def test_map_center():
    center = map_center([_stop(1, 'a', 10.0, 20.0), _stop(2, 'b', 20.0, 40.0), _stop(3, 'c')])
    assert center == {'latitude': 15.0, 'longitude': 30.0}
    assert map_center([_stop(1, 'a')]) is None


def test_maps_link_prefers_coordinates_then_address_then_name():
    assert create_google_maps_link(_stop(1, 'Square', 50.1, 14.4), 'Prague').endswith('query=50.1,14.4')
    assert create_google_maps_link(_stop(1, 'Bridge', address='Karlův most 1'), 'Prague').endswith(
        'query=Karl%C5%AFv+most+1')
    assert create_google_maps_link(_stop(1, 'Bridge'), 'Prague').endswith('query=Bridge%2C+Prague')


def test_print_html_contains_route_and_ordered_stops():
    stops = [_stop(1, 'Square', 50.1, 14.4), _stop(2, 'Castle', walk=None)]

    html = render_print_html(_route(), stops)

    assert html.startswith('<!DOCTYPE html>')
    assert '<h1>Old Town Walk</h1>' in html
    assert html.index('Square') < html.index('Castle')
    assert 'Wear good shoes' in html
    assert 'window.print' in html


def test_print_html_escapes_user_text():
    html = render_print_html(_route(route_name='<script>alert(1)</script>'), [_stop(1, 'A & B')])

    assert '<script>alert(1)</script>' not in html
    assert '&lt;script&gt;' in html
    assert 'A &amp; B' in html


def test_print_html_without_auto_print():
    assert 'window.print' not in render_print_html(_route(), [_stop(1, 'A')], auto_print=False)


def test_last_stop_has_no_walk_line():
    html = render_print_html(_route(), [_stop(1, 'A', walk='4 minutes'), _stop(2, 'B', walk='9 minutes')])
    assert '4 minutes to the next stop' in html
    assert '9 minutes to the next stop' not in html


def test_print_html_shows_route_creation_date():
    html = render_print_html(_route(), [_stop(1, 'A')])
    assert 'Generated: May 01, 2024' in html

    assert 'Generated: N/A' in render_print_html(_route(created_at=None), [_stop(1, 'A')])
