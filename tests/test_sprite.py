import pytest
from PIL import Image

from modelkit.sprite import Sprite


def test_full_screen_quad_maps_to_ndc_corners():
    sprite = Sprite(64, 32)
    corners = sprite.vertices((800, 600), 0, 0, 0.5, 800, 600)
    expected = [(-1.0, 1.0), (1.0, 1.0), (-1.0, -1.0), (1.0, -1.0)]
    for corner, (x, y) in zip(corners, expected):
        assert corner.position == pytest.approx((x, y, 0.5))


def test_default_source_covers_whole_texture():
    sprite = Sprite(64, 32)
    corners = sprite.vertices((100, 100), 10, 10, 0.0, 20, 20)
    assert [c.texcoord for c in corners] == [(0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (1.0, 1.0)]


def test_source_rectangle_scaled_by_texture_size():
    sprite = Sprite(64, 32)
    corners = sprite.vertices((100, 100), 0, 0, 0.0, 10, 10, source=(16, 8, 32, 16))
    assert corners[0].texcoord == pytest.approx((16 / 64, 8 / 32))
    assert corners[3].texcoord == pytest.approx((48 / 64, 24 / 32))


def test_color_and_depth_pass_through():
    sprite = Sprite()
    corners = sprite.vertices((100, 100), 0, 0, 0.25, 10, 10, color=(0.1, 0.2, 0.3, 0.4))
    assert len(corners) == 4
    for corner in corners:
        assert corner.color == (0.1, 0.2, 0.3, 0.4)
        assert corner.position[2] == 0.25


def test_half_turn_swaps_opposite_corners():
    sprite = Sprite(8, 8)
    plain = sprite.vertices((200, 100), 30, 20, 0.0, 40, 10)
    turned = sprite.vertices((200, 100), 30, 20, 0.0, 40, 10, angle=180.0)
    assert turned[0].position == pytest.approx(plain[3].position)
    assert turned[1].position == pytest.approx(plain[2].position)
    assert turned[0].texcoord == plain[0].texcoord


def test_rotation_keeps_centre():
    sprite = Sprite(8, 8)
    plain = sprite.vertices((200, 100), 30, 20, 0.0, 40, 10)
    turned = sprite.vertices((200, 100), 30, 20, 0.0, 40, 10, angle=37.0)

    def centre(corners):
        xs = [c.position[0] for c in corners]
        ys = [c.position[1] for c in corners]
        return sum(xs) / 4, sum(ys) / 4

    assert centre(turned) == pytest.approx(centre(plain))


def test_from_file_reads_texture_size(tmp_path):
    path = tmp_path / "tile.png"
    Image.new("RGB", (16, 8), (10, 20, 30)).save(path)
    sprite = Sprite.from_file(path)
    assert (sprite.texture_width, sprite.texture_height) == (16.0, 8.0)
    assert sprite.texture.mode == "RGBA"
    assert sprite.texture.getpixel((0, 0)) == (10, 20, 30, 255)


def test_from_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        Sprite.from_file(tmp_path / "absent.png")