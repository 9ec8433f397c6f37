import logging

import numpy as np

from marker_locator.registry import MarkerInfo, MarkerRegistry, marker_corners


def test_marker_corners_winding():
    """Corners go top-left, top-right, bottom-right, bottom-left (X right, Y down)."""
    c = marker_corners(0.2)
    assert np.allclose(c, [[-0.1, -0.1, 0], [0.1, -0.1, 0], [0.1, 0.1, 0], [-0.1, 0.1, 0]])
    # clockwise in a y-down image plane
    x, y = c[:, 0], c[:, 1]
    assert np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y) > 0


def test_marker_info_world_corners_follow_pose():
    info = MarkerInfo(4, 0.1, [1.0, 2.0, 3.0], [0.0, 0.0, 0.0])
    assert info.world.shape == (4, 3)
    assert np.allclose(info.world.mean(axis=0), [1.0, 2.0, 3.0])
    assert np.allclose(info.world[0], [0.95, 1.95, 3.0])

    rotated = MarkerInfo(4, 0.1, [0.0, 0.0, 0.0], [0.0, np.pi / 2, 0.0])
    # a quarter turn about Y puts the marker plane on x = 0
    assert np.allclose(rotated.world[:, 0], 0.0, atol=1e-12)
    edge = np.linalg.norm(rotated.world[1] - rotated.world[0])
    assert np.isclose(edge, 0.1)


def test_register_and_lookup():
    reg = MarkerRegistry()
    info = reg.register(3, 0.1, (0, 0, 0), (0, 0, 0))

    assert reg.lookup(3) is info
    assert reg.lookup(4) is None
    assert 3 in reg
    assert len(reg) == 1


def test_register_same_id_replaces(caplog):
    reg = MarkerRegistry()
    reg.register(7, 0.1, (0, 0, 0), (0, 0, 0))

    with caplog.at_level(logging.INFO, logger="marker_locator.registry"):
        reg.register(7, 0.25, (1, 2, 3), (0.1, 0.2, 0.3))

    assert len(reg) == 1
    info = reg.lookup(7)
    assert info.size == 0.25
    assert np.allclose(info.position, [1, 2, 3])
    assert np.allclose(info.rotation, [0.1, 0.2, 0.3])
    assert "already exists, was replaced" in caplog.text


def test_remove_is_idempotent():
    reg = MarkerRegistry()
    reg.register(5, 0.1, (0, 0, 0), (0, 0, 0))

    assert reg.remove(5) is True
    assert reg.remove(5) is False
    assert len(reg) == 0


def test_remove_unknown_id_leaves_registry_unchanged():
    reg = MarkerRegistry()
    reg.register(1, 0.1, (0, 0, 0), (0, 0, 0))
    reg.register(2, 0.1, (1, 0, 0), (0, 0, 0))

    assert reg.remove(99) is False
    assert sorted(m.marker_id for m in reg) == [1, 2]
