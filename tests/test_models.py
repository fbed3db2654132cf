from pathlib import Path

import pytest

import models
import routes
import services
import tasks
import utils
from models.bus import CrowdLevel, clamp_passengers, crowd_level_for
from models.user import Role, User
from seed import seed_routes, seed_users
from utils.geo import distance_along_loop, haversine_m, lerp


@pytest.mark.parametrize("count,level", [
    (0, CrowdLevel.LOW), (19, CrowdLevel.LOW),
    (20, CrowdLevel.MEDIUM), (44, CrowdLevel.MEDIUM),
    (45, CrowdLevel.HIGH), (60, CrowdLevel.HIGH),
])
def test_crowd_level_buckets(count, level):
    assert crowd_level_for(count) == level


def test_clamp_passengers():
    assert clamp_passengers(-3, 60) == 0
    assert clamp_passengers(61, 60) == 60
    assert clamp_passengers(33, 60) == 33


def test_user_serialisation_hides_credentials():
    u = User(id=9, role=Role.DRIVER, name="Test Driver", username="driver9", password="pw")
    assert u.to_dict() == {"id": 9, "role": "driver", "name": "Test Driver"}


def test_route_next_stop_index_walks_the_loop():
    route1 = seed_routes()[0]
    assert route1.next_stop_index(0) == 2
    assert route1.next_stop_index(2) == 4
    assert route1.next_stop_index(5) == 6
    assert route1.next_stop_index(7) == 0    # wraps back to Central


def test_haversine_known_distance():
    # one degree of latitude is ~111.2 km
    assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111195, rel=1e-3)
    assert haversine_m(13.0, 80.0, 13.0, 80.0) == 0.0


def test_lerp_clamps_fraction():
    assert lerp((0.0, 0.0), (2.0, 4.0), 0.5) == (1.0, 2.0)
    assert lerp((0.0, 0.0), (2.0, 4.0), 1.5) == (2.0, 4.0)


def test_distance_along_loop_sums_segments():
    path = [(0.0, 0.0), (0.0, 1.0), (0.0, 2.0), (0.0, 3.0)]
    one = haversine_m(0.0, 0.0, 0.0, 1.0)
    assert distance_along_loop(path, path[0], 0, 1) == pytest.approx(one)
    assert distance_along_loop(path, path[0], 0, 3) == pytest.approx(3 * one, rel=1e-6)
    # from the last vertex, the loop closes back to the first
    assert distance_along_loop(path, path[3], 3, 1) == pytest.approx(haversine_m(0, 3, 0, 0) + one)


def test_seeded_users_carry_hidden_password():
    users = seed_users()
    assert {u.password for u in users.values()} == {"123"}
    assert "password" not in users[1].to_dict()


def test_subpackages_load_from_this_project():
    root = Path(__file__).resolve().parent.parent
    for pkg in (models, routes, services, tasks, utils):
        assert str(root / pkg.__name__) in [str(Path(p).resolve()) for p in pkg.__path__]
