import numpy as np
import pytest

from sightlocate.core.geometry import Pose
from sightlocate.core.planes import Plane
from sightlocate.localize.placement import (
    PlacedObject,
    PlacedObjectStore,
    resolve_placement,
    snap_duration_s,
    snap_to_plane,
)


def test_far_position_is_clamped_to_max_distance():
    assert np.allclose(resolve_placement([20.0, 0.0, 0.0], [0.0, 0.0, 0.0], 10.0), [10.0, 0.0, 0.0])


def test_near_position_is_untouched():
    assert np.allclose(resolve_placement([1.0, 2.0, -3.0], [0.5, 0.0, 0.0], 10.0), [1.0, 2.0, -3.0])


def test_clamped_positions_stay_on_the_camera_ray():
    rng = np.random.default_rng(0)
    for _ in range(100):
        cam = rng.uniform(-5.0, 5.0, size=3)
        raw = cam + rng.normal(size=3) * 50.0
        max_d = float(rng.uniform(1.0, 10.0))
        if np.linalg.norm(raw - cam) <= max_d:
            continue
        out = resolve_placement(raw, cam, max_d)
        assert abs(np.linalg.norm(out - cam) - max_d) < 1e-9
        assert np.linalg.norm(np.cross(out - cam, raw - cam)) < 1e-6
        assert np.dot(out - cam, raw - cam) > 0


def test_negative_max_distance_rejected():
    with pytest.raises(ValueError):
        resolve_placement([1.0, 0.0, 0.0], [0.0, 0.0, 0.0], -1.0)


def test_snap_to_plane_bands():
    plane = Plane.horizontal("table", [0.0, 0.5, 0.0], 1.0, 1.0)
    assert snap_to_plane([0.0, 0.53, 0.0], plane) == pytest.approx(0.5)
    # already resting on the plane
    assert snap_to_plane([0.0, 0.5, 0.0], plane) is None
    # too far above
    assert snap_to_plane([0.0, 0.6, 0.0], plane) is None
    # closer than epsilon is not worth moving
    assert snap_to_plane([0.0, 0.5005, 0.0], plane) is None
    # slightly below also snaps up
    assert snap_to_plane([0.0, 0.48, 0.0], plane) == pytest.approx(0.5)


def test_snap_footprint_tolerance():
    plane = Plane.horizontal("table", [0.0, 0.0, 0.0], 1.0, 1.0)
    # half extent 0.5, grown by 10% of the extent on each side -> 0.6
    assert snap_to_plane([0.55, 0.03, 0.0], plane) == pytest.approx(0.0)
    assert snap_to_plane([0.65, 0.03, 0.0], plane) is None
    assert snap_to_plane([0.55, 0.03, 0.0], plane, tolerance_fraction=0.0) is None


def test_snap_duration_is_two_mm_per_second():
    assert snap_duration_s(0.03) == pytest.approx(15.0)
    assert snap_duration_s(-0.002) == pytest.approx(1.0)


def test_store_place_clamp_and_clear():
    store = PlacedObjectStore(max_distance=10.0)
    obj = store.place("cup", [0.0, 0.0, -20.0], Pose.identity())
    assert np.allclose(obj.position, [0.0, 0.0, -10.0])
    assert store.last_used.label == "cup"
    assert [o.label for o in store.objects()] == ["cup"]
    store.remove_all()
    assert store.objects() == []
    assert store.last_used is None


def test_store_place_with_explicit_max_distance():
    store = PlacedObjectStore(max_distance=10.0)
    obj = store.place("cup", [0.0, 0.0, -20.0], Pose.identity(), max_distance=2.0)
    assert np.allclose(obj.position, [0.0, 0.0, -2.0])


def test_store_hands_out_copies():
    store = PlacedObjectStore()
    obj = store.place("cup", [0.0, -1.02, -1.0], Pose.identity())
    obj.position[0] = 5.0
    assert store.objects()[0].position[0] == pytest.approx(0.0)

    before = store.objects()[0]
    store.snap_onto_plane(Plane.horizontal("table", [0.0, -1.0, -1.0], 1.0, 1.0))
    assert before.position[1] == pytest.approx(-1.02)
    assert store.objects()[0].position[1] == pytest.approx(-1.0)


def test_store_snaps_every_nearby_object():
    store = PlacedObjectStore()
    store.place("cup", [0.0, -1.02, -1.0], Pose.identity())
    store.place("fork", [0.2, -0.97, -1.2], Pose.identity())
    store.place("plate", [3.0, -1.02, -1.0], Pose.identity())
    plane = Plane.horizontal("table", [0.0, -1.0, -1.0], 1.0, 1.0)

    events = store.snap_onto_plane(plane)

    assert [e.label for e in events] == ["cup", "fork"]
    assert events[0].from_y == pytest.approx(-1.02)
    assert events[0].to_y == pytest.approx(-1.0)
    assert events[0].duration_s == pytest.approx(10.0)
    cup, fork, far = store.objects()
    assert cup.position[1] == pytest.approx(-1.0)
    assert fork.position[1] == pytest.approx(-1.0)
    assert far.position[1] == pytest.approx(-1.02)
    # second pass: already on the plane
    assert store.snap_onto_plane(plane) == []


def test_relative_transform():
    obj = PlacedObject(label="cup", position=[0.0, 0.0, -4.0], yaw_rad=-np.pi / 2)
    camera = Pose.from_rotation_translation(np.eye(3), [0.0, 3.0, 0.0])
    rel = PlacedObjectStore.relative_transform(obj, camera)
    assert rel.distance == pytest.approx(5.0)
    assert rel.yaw_deg == 270
    assert rel.scale == pytest.approx(0.05)
