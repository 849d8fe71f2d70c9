import io
import struct

import pytest
from PIL import Image as PILImage, ImageSequence

import imaging
from imaging import (
    DecodeError,
    EmptyFrameError,
    EncodeError,
    OutOfBoundsError,
    center_square_box,
    center_square_crop,
    composite_frames,
    crop_image,
    decode_first_frame,
    encode,
    ensure_thumbnail,
    generate_thumbnail,
    image_info,
    is_opaque,
    make_thumbnail,
    rect_crop,
    resize_to,
    write_atomic,
)

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
CLEAR = (0, 0, 0, 0)


def half_frame(color, left):
    frame = PILImage.new("RGBA", (4, 2), CLEAR)
    frame.paste(color, (0, 0, 2, 2) if left else (2, 0, 4, 2))
    return frame


# -------------------------------
# Crop & resize
# -------------------------------
@pytest.mark.parametrize(
    "size, box",
    [
        ((400, 300), (50, 0, 350, 300)),
        ((300, 400), (0, 50, 300, 350)),
        ((5, 2), (1, 0, 3, 2)),
        ((64, 64), (0, 0, 64, 64)),
    ],
)
def test_center_square_box(size, box):
    assert center_square_box(*size) == box


def test_center_square_crop_is_identity_on_squares():
    im = PILImage.new("RGBA", (32, 32))
    assert center_square_crop(im) is im


@pytest.mark.parametrize("size", [(400, 300), (301, 100), (7, 30)])
def test_center_square_crop_uses_short_side(size):
    assert center_square_crop(PILImage.new("RGBA", size)).size == (min(size),) * 2


def test_thumbnail_drops_the_margins_of_wide_images():
    im = PILImage.new("RGB", (400, 300), (255, 0, 0))
    im.paste((0, 0, 255), (50, 0, 350, 300))
    thumb = make_thumbnail(im, 200)
    assert thumb.size == (200, 200)
    assert thumb.getpixel((0, 0))[:3] == (0, 0, 255)
    assert thumb.getpixel((199, 199))[:3] == (0, 0, 255)


def test_resize_resolves_palette_first():
    paletted = PILImage.new("RGB", (10, 10), (255, 0, 0)).convert("P")
    out = resize_to(paletted, 5, 5)
    assert out.mode == "RGBA"
    assert out.size == (5, 5)


def test_rect_crop_size():
    im = PILImage.new("RGBA", (100, 100))
    assert rect_crop(im, 10, 20, 60, 25).size == (50, 5)
    assert rect_crop(im, 0, 0, 100, 100).size == (100, 100)


@pytest.mark.parametrize(
    "box",
    [
        (-1, 0, 10, 10),
        (0, -1, 10, 10),
        (0, 0, 101, 10),
        (0, 0, 10, 101),
        (10, 0, 10, 10),
        (20, 0, 10, 10),
        (0, 10, 10, 10),
        (0, 30, 10, 20),
    ],
)
def test_rect_crop_out_of_bounds(box):
    with pytest.raises(OutOfBoundsError):
        rect_crop(PILImage.new("RGBA", (100, 100)), *box)


# -------------------------------
# First-frame decoding
# -------------------------------
def test_composite_stops_at_first_opaque_canvas():
    frames = iter(
        [
            (half_frame(RED, left=True), (0, 0)),
            (half_frame(GREEN, left=False), (0, 0)),
            (PILImage.new("RGBA", (4, 2), BLUE), (0, 0)),
        ]
    )
    canvas = composite_frames(frames)
    assert canvas.getpixel((0, 0)) == RED
    assert canvas.getpixel((3, 1)) == GREEN
    # the blue frame was never read
    frame, _ = next(frames)
    assert frame.getpixel((0, 0)) == BLUE


def test_composite_keeps_pixels_under_transparent_frames():
    canvas = composite_frames(
        [(half_frame(RED, left=True), (0, 0)), (PILImage.new("RGBA", (4, 2), CLEAR), (0, 0))]
    )
    assert canvas.getpixel((1, 1)) == RED
    assert canvas.getpixel((3, 0))[3] == 0
    assert not is_opaque(canvas)


def test_composite_places_frames_relative_to_the_first():
    canvas = composite_frames(
        [
            (PILImage.new("RGBA", (2, 1), CLEAR), (5, 3)),
            (PILImage.new("RGBA", (1, 1), GREEN), (6, 3)),
            (PILImage.new("RGBA", (6, 4), RED), (0, 0)),
        ]
    )
    assert canvas.size == (2, 1)
    assert canvas.getpixel((0, 0)) == RED
    assert canvas.getpixel((1, 0)) == GREEN


def test_composite_without_frames():
    with pytest.raises(EmptyFrameError):
        composite_frames([])


def test_decode_jpeg(make_image):
    im, kind = decode_first_frame(make_image("JPEG", (40, 30)))
    assert kind == "jpeg"
    assert im.mode == "RGBA"
    assert im.size == (40, 30)


def test_decode_png(make_image):
    im, kind = decode_first_frame(make_image("PNG", (12, 8), (1, 2, 3, 128)))
    assert kind == "png"
    assert im.getpixel((0, 0)) == (1, 2, 3, 128)


def test_decode_gif_returns_first_opaque_frame(make_gif):
    im, kind = decode_first_frame(make_gif())
    assert kind == "gif"
    assert im.size == (20, 10)
    assert is_opaque(im)
    assert im.getpixel((5, 5)) == RED


# Palette for hand-built GIFs; index 0 is the transparent one.
T, R, B, G = 0, 1, 2, 3
PALETTE = bytes([0, 0, 0, 255, 0, 0, 0, 0, 255, 0, 255, 0])


def lzw(pixels):
    """2-bit LZW data, clearing the table every two pixels so codes stay 3 bits wide."""
    codes = []
    for i in range(0, len(pixels), 2):
        codes += [4, *pixels[i:i + 2]]
    codes.append(5)
    bits = 0
    for n, code in enumerate(codes):
        bits |= code << (3 * n)
    data = bits.to_bytes((3 * len(codes) + 7) // 8, "little")
    return bytes([2, len(data)]) + data + b"\x00"


def build_gif(screen, frames):
    """GIF89a bytes; each frame is (left, top, width, height, pixels, disposal)."""
    out = b"GIF89a" + struct.pack("<HHBBB", screen[0], screen[1], 0x81, 0, 0) + PALETTE
    for left, top, width, height, pixels, disposal in frames:
        out += b"\x21\xf9\x04" + bytes([(disposal << 2) | 1, 10, 0, T, 0])
        out += b"\x2c" + struct.pack("<HHHHB", left, top, width, height, 0)
        out += lzw(pixels)
    return out + b"\x3b"


def test_decode_gif_ignores_disposal_methods():
    data = build_gif(
        (2, 1),
        [
            (0, 0, 2, 1, [R, T], 1),
            (0, 0, 2, 1, [B, T], 3),
            (0, 0, 2, 1, [T, G], 1),
            (0, 0, 2, 1, [R, R], 1),
        ],
    )
    im, kind = decode_first_frame(data)
    assert kind == "gif"
    assert im.getpixel((0, 0)) == BLUE
    assert im.getpixel((1, 0)) == GREEN


def test_decode_gif_stops_at_first_opaque_frame():
    # frame 2 completes the canvas; frame 3 would paint it all red
    data = build_gif(
        (2, 2),
        [
            (0, 0, 2, 2, [R, T, T, T], 1),
            (0, 0, 2, 2, [T, B, T, T], 2),
            (0, 0, 2, 2, [T, T, G, G], 1),
            (0, 0, 2, 2, [R, R, R, R], 1),
        ],
    )
    im, _ = decode_first_frame(data)
    assert is_opaque(im)
    assert [im.getpixel(xy) for xy in [(0, 0), (1, 0), (0, 1), (1, 1)]] == [RED, BLUE, GREEN, GREEN]


def test_decode_gif_never_opaque_returns_last_state():
    data = build_gif((2, 1), [(0, 0, 2, 1, [R, T], 1), (0, 0, 2, 1, [T, T], 1)])
    im, _ = decode_first_frame(data)
    assert im.getpixel((0, 0)) == RED
    assert im.getpixel((1, 0))[3] == 0


def test_decode_gif_canvas_is_the_first_frame_rectangle():
    data = build_gif(
        (4, 2),
        [
            (1, 1, 2, 1, [R, T], 1),
            (0, 0, 4, 2, [G, G, G, G, B, T, B, B], 1),
        ],
    )
    im, _ = decode_first_frame(data)
    assert im.size == (2, 1)
    assert im.getpixel((0, 0)) == RED
    assert im.getpixel((1, 0)) == BLUE


def test_decode_truncated_gif():
    data = build_gif((2, 1), [(0, 0, 2, 1, [R, T], 1), (0, 0, 2, 1, [T, G], 1)])
    with pytest.raises(DecodeError):
        decode_first_frame(data[:-8])


@pytest.mark.parametrize("fmt", ["BMP", "TIFF"])
def test_decode_rejects_other_formats(make_image, fmt):
    with pytest.raises(DecodeError):
        decode_first_frame(make_image(fmt, (8, 8)))


def test_decode_rejects_garbage_and_truncated(make_image):
    with pytest.raises(DecodeError):
        decode_first_frame(b"definitely not an image")
    data = make_image("JPEG", (200, 200))
    with pytest.raises(DecodeError):
        decode_first_frame(data[: len(data) // 2])


def test_image_info(tmp_path, make_image):
    path = tmp_path / "x.png"
    path.write_bytes(make_image("PNG", (33, 21)))
    assert image_info(path) == (33, 21, "png")


# -------------------------------
# Encoding & crops
# -------------------------------
def test_encode_unknown_kind():
    with pytest.raises(EncodeError):
        encode(PILImage.new("RGBA", (4, 4)), "webp")


def test_encode_jpeg_drops_alpha():
    data = encode(PILImage.new("RGBA", (4, 4), RED), "jpeg")
    assert PILImage.open(io.BytesIO(data)).format == "JPEG"


def test_crop_jpeg(make_image):
    data, kind = crop_image(make_image("JPEG", (100, 80)), (10, 10, 60, 40))
    out = PILImage.open(io.BytesIO(data))
    assert kind == "jpeg"
    assert out.format == "JPEG"
    assert out.size == (50, 30)


def test_crop_png_is_lossless(make_image):
    data, kind = crop_image(make_image("PNG", (10, 10), (1, 2, 3, 128)), (2, 2, 5, 5))
    out = PILImage.open(io.BytesIO(data))
    assert kind == "png"
    assert out.size == (3, 3)
    assert out.convert("RGBA").getpixel((0, 0)) == (1, 2, 3, 128)


def test_crop_gif_keeps_every_frame_and_delay(make_gif):
    data, kind = crop_image(make_gif(), (0, 0, 10, 5))
    out = PILImage.open(io.BytesIO(data))
    assert kind == "gif"
    assert out.size == (10, 5)
    assert out.n_frames == 3
    assert [f.info.get("duration") for f in ImageSequence.Iterator(out)] == [100, 200, 300]


def test_crop_gif_out_of_bounds(make_gif):
    with pytest.raises(OutOfBoundsError):
        crop_image(make_gif(), (0, 0, 21, 5))


# -------------------------------
# Derivative files
# -------------------------------
def test_write_atomic_leaves_old_file_on_failure(tmp_path, monkeypatch):
    path = tmp_path / "1.png"
    path.write_bytes(b"old")

    def boom(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(imaging.os, "replace", boom)
    with pytest.raises(OSError):
        write_atomic(path, b"new")
    assert path.read_bytes() == b"old"
    assert list(tmp_path.iterdir()) == [path]


def test_ensure_thumbnail_generates_once(tmp_path, make_image):
    src = tmp_path / "1.jpg"
    src.write_bytes(make_image("JPEG", (400, 300)))
    dst = tmp_path / "thumb" / "1.jpg"

    assert ensure_thumbnail(src, dst) is True
    thumb = PILImage.open(dst)
    assert thumb.format == "JPEG"
    assert thumb.size == (200, 200)

    assert ensure_thumbnail(src, dst) is False


def test_ensure_thumbnail_trusts_existing_file(tmp_path, make_image):
    src = tmp_path / "1.jpg"
    src.write_bytes(make_image("JPEG"))
    dst = tmp_path / "1-thumb.jpg"
    dst.write_bytes(b"junk")

    assert ensure_thumbnail(src, dst) is False
    assert dst.read_bytes() == b"junk"


def test_gif_thumbnail_is_png(tmp_path, make_gif):
    im, kind = decode_first_frame(make_gif())
    dst = tmp_path / "1.png"
    generate_thumbnail(im, kind, dst, size=16)
    thumb = PILImage.open(dst)
    assert thumb.format == "PNG"
    assert thumb.size == (16, 16)
