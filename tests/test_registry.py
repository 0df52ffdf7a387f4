import threading

import numpy as np
import pytest

from sightlocate.core.geometry import Pose
from sightlocate.core.planes import Plane, PlaneClassification
from sightlocate.core.registry import PlaneRegistry


def test_plane_rejects_negative_extent():
    with pytest.raises(ValueError):
        Plane(plane_id="p", transform=Pose.identity(), extent_x=-1.0, extent_z=1.0)


def test_plane_contains_local_with_tolerance():
    plane = Plane(plane_id="p", transform=Pose.identity(), extent_x=1.0, extent_z=2.0, center=[0.5, 0.0, 0.0])
    assert plane.contains_local(0.9, 0.9)
    assert not plane.contains_local(1.05, 0.0)
    assert plane.contains_local(1.05, 0.0, tolerance=0.1)
    assert not plane.contains_local(0.5, 1.3, tolerance=0.1)


def test_plane_frames_and_classification():
    plane = Plane.horizontal("floor", [1.0, -1.5, 2.0], 3.0, 3.0, classification="floor")
    assert plane.classification is PlaneClassification.FLOOR
    assert plane.classification.description == "Floor"
    assert PlaneClassification.NONE.description == "Unknown"
    assert np.allclose(plane.normal, [0.0, 1.0, 0.0])
    assert np.allclose(plane.world_center, [1.0, -1.5, 2.0])
    assert np.allclose(plane.to_local([1.0, -1.0, 2.0]), [0.0, 0.5, 0.0])


def test_registry_replaces_by_id_and_keeps_order():
    reg = PlaneRegistry()
    reg.add(Plane.horizontal("a", [0.0, 0.0, 0.0], 1.0, 1.0))
    reg.add(Plane.horizontal("b", [0.0, 1.0, 0.0], 1.0, 1.0))
    reg.add(Plane.horizontal("a", [0.0, 0.0, 0.0], 2.0, 2.0))
    snap = reg.snapshot()
    assert [p.plane_id for p in snap] == ["a", "b"]
    assert snap[0].extent_x == 2.0
    assert len(reg) == 2
    assert "a" in reg


def test_registry_remove_missing_is_noop():
    reg = PlaneRegistry()
    reg.add(Plane.horizontal("a", [0.0, 0.0, 0.0], 1.0, 1.0))
    reg.remove("nope")
    reg.remove("a")
    reg.remove("a")
    assert len(reg) == 0
    assert reg.get("a") is None


def test_snapshot_is_isolated_from_later_updates():
    reg = PlaneRegistry()
    reg.add(Plane.horizontal("a", [0.0, 0.0, 0.0], 1.0, 1.0))
    snap = reg.snapshot()
    reg.add(Plane.horizontal("b", [0.0, 1.0, 0.0], 1.0, 1.0))
    reg.remove("a")
    assert [p.plane_id for p in snap] == ["a"]
    assert isinstance(snap, tuple)


def test_concurrent_writers_and_readers():
    reg = PlaneRegistry()
    errors: list[Exception] = []

    def writer(k: int) -> None:
        for i in range(200):
            pid = f"{k}-{i % 10}"
            reg.add(Plane.horizontal(pid, [0.0, float(i), 0.0], 1.0, 1.0))
            if i % 3 == 0:
                reg.remove(pid)

    def reader() -> None:
        try:
            for _ in range(200):
                ids = [p.plane_id for p in reg.snapshot()]
                assert len(ids) == len(set(ids))
        except Exception as e:  # surfaced below
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(k,)) for k in range(4)]
    threads += [threading.Thread(target=reader) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert not errors
    assert len(reg) <= 40
