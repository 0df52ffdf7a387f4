import numpy as np
import pytest

from sightlocate.core.geometry import Ray
from sightlocate.errors import LocalizationError, ParallelRaysError
from sightlocate.localize.stereo import localize_stereo


def test_crossing_rays_recover_the_point():
    target = np.array([0.3, 0.2, -2.0])
    o1 = np.array([0.0, 0.0, 0.0])
    o2 = np.array([1.0, 0.0, 0.5])
    xyz = localize_stereo(Ray(o1, target - o1), Ray(o2, target - o2))
    assert np.linalg.norm(xyz - target) < 1e-9


def test_skew_rays_give_segment_midpoint():
    ray1 = Ray(origin=[0.0, 0.0, 0.0], direction=[1.0, 0.0, 0.0])
    ray2 = Ray(origin=[0.0, 1.0, 1.0], direction=[0.0, 0.0, 1.0])
    assert np.allclose(localize_stereo(ray1, ray2), [0.0, 0.5, 0.0])


def test_parallel_rays_raise():
    ray1 = Ray(origin=[0.0, 0.0, 0.0], direction=[1.0, 0.0, 0.0])
    ray2 = Ray(origin=[0.0, 1.0, 0.0], direction=[1.0, 0.0, 0.0])
    with pytest.raises(ParallelRaysError):
        localize_stereo(ray1, ray2)


def test_antiparallel_rays_raise():
    ray1 = Ray(origin=[0.0, 0.0, 0.0], direction=[0.0, 0.0, -1.0])
    ray2 = Ray(origin=[1.0, 0.0, -5.0], direction=[0.0, 0.0, 1.0])
    with pytest.raises(LocalizationError):
        localize_stereo(ray1, ray2)


def test_parallel_threshold_is_configurable():
    ray1 = Ray(origin=[0.0, 0.0, 0.0], direction=[1.0, 0.0, 0.0])
    ray2 = Ray(origin=[0.0, 1.0, 0.0], direction=[1.0, 1e-4, 0.0])
    localize_stereo(ray1, ray2)
    with pytest.raises(ParallelRaysError):
        localize_stereo(ray1, ray2, eps=1e-6)
