import pytest

from pickbook.utils.geo import decode_polyline, directions_url, format_distance, haversine_m, path_length_m


def test_decode_polyline_reference_vector():
    assert decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@") == [
        (38.5, -120.2),
        (40.7, -120.95),
        (43.252, -126.453),
    ]


def test_decode_polyline_empty():
    assert decode_polyline("") == []


def test_decode_polyline_truncated():
    with pytest.raises(ValueError):
        decode_polyline("_p~iF~ps|U_ulL")


def test_haversine_one_degree_of_longitude_on_the_equator():
    assert haversine_m((0.0, 0.0), (0.0, 1.0)) == pytest.approx(111_195, rel=1e-3)


def test_path_length_sums_segments():
    points = [(0.0, 0.0), (0.0, 1.0), (0.0, 2.0)]

    assert path_length_m(points) == pytest.approx(2 * haversine_m(points[0], points[1]))
    assert path_length_m(points[:1]) == 0.0


def test_format_distance():
    assert format_distance(849.6) == "850 m"
    assert format_distance(1234) == "1.2 km"


def test_directions_url():
    url = directions_url((14.5, 121.0), (14.55, 121.02))

    assert url.startswith("https://www.google.com/maps/dir/?api=1")
    assert "destination=14.55%2C121.02" in url
    assert "origin=14.5%2C121.0" in url
    assert "origin=" not in directions_url(None, (14.55, 121.02))
