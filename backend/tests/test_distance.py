import math

from services.location import LocationResolver, distance_km

PUNE = (18.5204, 73.8567)
MUMBAI = (19.0760, 72.8777)
LONAVALA = (18.7546, 73.4062)


def test_distance_pune_mumbai_known_value():
    d = distance_km(*PUNE, *MUMBAI)
    assert 119.0 <= d <= 123.0


def test_distance_is_symmetric():
    pairs = [
        (PUNE, MUMBAI),
        ((0.0, 0.0), (45.0, 90.0)),
        ((-33.86, 151.21), (51.5, -0.12)),
        ((89.9, 10.0), (-89.9, -170.0)),
    ]
    for a, b in pairs:
        assert math.isclose(distance_km(*a, *b), distance_km(*b, *a), rel_tol=1e-12)


def test_distance_identity_is_zero():
    for point in (PUNE, (0.0, 0.0), (90.0, 0.0), (-90.0, 180.0)):
        assert distance_km(*point, *point) == 0.0


def test_distance_triangle_along_geodesic():
    # Lonavala sits roughly on the Pune-Mumbai line
    direct = distance_km(*PUNE, *MUMBAI)
    via = distance_km(*PUNE, *LONAVALA) + distance_km(*LONAVALA, *MUMBAI)
    assert via >= direct
    assert via - direct < 5.0


def test_distance_antipodal_and_polar_are_finite():
    half_circumference = math.pi * 6371.0
    d = distance_km(0.0, 0.0, 0.0, 180.0)
    assert math.isclose(d, half_circumference, rel_tol=1e-9)
    pole = distance_km(90.0, 0.0, -90.0, 0.0)
    assert math.isclose(pole, half_circumference, rel_tol=1e-9)
    near_pole = distance_km(89.999, 0.0, 89.999, 180.0)
    assert 0.0 < near_pole < 1.0


def test_resolver_exposes_same_distance():
    assert LocationResolver.distance_km(*PUNE, *MUMBAI) == distance_km(*PUNE, *MUMBAI)
