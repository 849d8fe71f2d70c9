"""Image decoding and derivative generation (thumbnails and crops).

Decoded images are normalized to RGBA right away so the rest of the pipeline
never has to care which raster layout the source format produced.
"""
import io
import os
import struct
import tempfile
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple

from PIL import Image as PILImage, ImageSequence, UnidentifiedImageError

import config
from logger import setup_logger

log = setup_logger("ihost.imaging")

# Pillow format name -> our image kind
SUPPORTED_KINDS = {"JPEG": "jpeg", "PNG": "png", "GIF": "gif"}

Box = Tuple[int, int, int, int]

_DECODE_ERRORS = (OSError, SyntaxError, ValueError, EOFError, PILImage.DecompressionBombError)


class ImagingError(Exception):
    """Base class for decode/encode/crop failures."""


class DecodeError(ImagingError):
    pass


class EmptyFrameError(ImagingError):
    pass


class EncodeError(ImagingError):
    pass


class OutOfBoundsError(ImagingError):
    pass


def _open(data: bytes) -> Tuple[PILImage.Image, str]:
    try:
        im = PILImage.open(io.BytesIO(data))
    except (UnidentifiedImageError, *_DECODE_ERRORS) as e:
        raise DecodeError(f"Cannot decode image: {e}") from e

    kind = SUPPORTED_KINDS.get(im.format)
    if kind is None:
        raise DecodeError(f"Unsupported image kind '{im.format}'")
    return im, kind


def is_opaque(im: PILImage.Image) -> bool:
    """True when every pixel of an RGBA image has a non-zero alpha."""
    low, _ = im.getchannel("A").getextrema()
    return low > 0


def composite_frames(frames: Iterable[Tuple[PILImage.Image, Tuple[int, int]]]) -> PILImage.Image:
    """Draw frames over each other until the canvas is fully opaque.

    `frames` yields `(image, (left, top))` pairs in screen coordinates. The
    canvas covers the first frame's rectangle. Only non-transparent pixels of
    a frame are copied, so earlier frames show through where a later frame is
    transparent. Returns the canvas after the first frame that makes it
    opaque, or after the last frame otherwise.
    """
    canvas = None
    origin = (0, 0)
    for frame, (left, top) in frames:
        rgba = frame.convert("RGBA")
        if canvas is None:
            canvas = PILImage.new("RGBA", rgba.size, (0, 0, 0, 0))
            origin = (left, top)

        mask = rgba.getchannel("A").point(lambda a: 255 if a else 0)
        canvas.paste(rgba, (left - origin[0], top - origin[1]), mask)
        if is_opaque(canvas):
            break

    if canvas is None:
        raise EmptyFrameError("GIF has no frames")
    return canvas


def _skip_sub_blocks(data: bytes, pos: int) -> int:
    while data[pos]:
        pos += data[pos] + 1
    return pos + 1


def _color_table_size(flags: int) -> int:
    return 3 * (2 << (flags & 0x07)) if flags & 0x80 else 0


def gif_frames(data: bytes) -> Iterator[Tuple[PILImage.Image, Tuple[int, int]]]:
    """Yield each GIF image block as drawn on its own, with its screen offset.

    Every image block is re-wrapped as a standalone single-frame GIF (screen
    sized to the block, global palette and its own graphic control extension),
    so a frame holds only the pixels it draws whatever its disposal method.
    """
    if data[:6] not in (b"GIF87a", b"GIF89a") or len(data) < 13:
        raise DecodeError("Not a GIF stream")

    pos = 13 + _color_table_size(data[10])
    screen_tail = data[10:pos]
    gce = b""
    try:
        while pos < len(data):
            block = data[pos]
            if block == 0x3B:
                break
            if block == 0x21:
                end = _skip_sub_blocks(data, pos + 2)
                if data[pos + 1] == 0xF9:
                    gce = data[pos:end]
                pos = end
            elif block == 0x2C:
                left, top, width, height, flags = struct.unpack("<HHHHB", data[pos + 1:pos + 10])
                body = pos + 10 + _color_table_size(flags)
                # +1 skips the LZW minimum code size byte
                end = _skip_sub_blocks(data, body + 1)
                standalone = b"".join(
                    (
                        data[:6],
                        struct.pack("<HH", width, height),
                        screen_tail,
                        gce,
                        b"\x2c",
                        struct.pack("<HHHHB", 0, 0, width, height, flags),
                        data[pos + 10:end],
                        b"\x3b",
                    )
                )
                im = PILImage.open(io.BytesIO(standalone))
                im.load()
                yield im, (left, top)
                gce = b""
                pos = end
            else:
                raise DecodeError(f"Unknown GIF block 0x{block:02x}")
    except (IndexError, struct.error) as e:
        raise DecodeError(f"Truncated GIF stream: {e}") from e


def decode_first_frame(data: bytes) -> Tuple[PILImage.Image, str]:
    """Decode source bytes into one RGBA image plus its kind (jpeg, png or gif)."""
    im, kind = _open(data)
    try:
        if kind == "gif":
            return composite_frames(gif_frames(data)), kind
        im.load()
        return im.convert("RGBA"), kind
    except (UnidentifiedImageError, *_DECODE_ERRORS) as e:
        raise DecodeError(f"Cannot decode {kind} image: {e}") from e


def image_info(path) -> Tuple[int, int, str]:
    """Width, height and kind of an image file, reading only its header."""
    im, kind = _open(Path(path).read_bytes())
    return im.width, im.height, kind


# -------------------------------
# Crop & resize
# -------------------------------
def center_square_box(width: int, height: int) -> Box:
    short, long = min(width, height), max(width, height)
    offset = (long - short) // 2
    if width > height:
        return offset, 0, offset + short, height
    return 0, offset, width, offset + short


def center_square_crop(im: PILImage.Image) -> PILImage.Image:
    """Largest square centered on the image; square input is returned as-is."""
    if im.width == im.height:
        return im
    return im.crop(center_square_box(im.width, im.height))


def resize_to(im: PILImage.Image, width: int, height: int) -> PILImage.Image:
    if width <= 0 or height <= 0:
        raise ValueError("Target size must be positive")
    # Palette indices must never be interpolated.
    if im.mode not in ("RGB", "RGBA"):
        im = im.convert("RGBA")
    return im.resize((width, height), PILImage.Resampling.LANCZOS)


def check_bounds(size: Tuple[int, int], box: Box) -> None:
    width, height = size
    left, top, right, bottom = box
    if not (0 <= left < right <= width and 0 <= top < bottom <= height):
        raise OutOfBoundsError(
            f"Crop boundaries {box} are not contained within image boundaries {size}"
        )


def rect_crop(im: PILImage.Image, left: int, top: int, right: int, bottom: int) -> PILImage.Image:
    box = (left, top, right, bottom)
    check_bounds(im.size, box)
    return im.crop(box)


def make_thumbnail(im: PILImage.Image, size: Optional[int] = None) -> PILImage.Image:
    size = size or config.THUMBNAIL_DIMENSIONS
    return resize_to(center_square_crop(im), size, size)


# -------------------------------
# Encoding
# -------------------------------
def thumb_kind_for(kind: str) -> str:
    """GIF thumbnails are written as PNG to avoid re-quantizing a palette."""
    return "png" if kind == "gif" else kind


def encode(im: PILImage.Image, kind: str) -> bytes:
    buf = io.BytesIO()
    try:
        if kind == "jpeg":
            im.convert("RGB").save(buf, format="JPEG", quality=100)
        elif kind == "png":
            im.save(buf, format="PNG")
        elif kind == "gif":
            im.save(buf, format="GIF")
        else:
            raise EncodeError(f"Unsupported output kind '{kind}'")
    except (OSError, ValueError) as e:
        raise EncodeError(f"Cannot encode {kind} image: {e}") from e
    return buf.getvalue()


def _crop_animated(im: PILImage.Image, box: Box) -> bytes:
    # Disposal methods and per-frame sub-rectangles of the source are not kept.
    frames, durations = [], []
    try:
        for frame in ImageSequence.Iterator(im):
            check_bounds(frame.size, box)
            frames.append(frame.convert("RGBA").crop(box))
            durations.append(frame.info.get("duration", 0))
    except _DECODE_ERRORS as e:
        raise DecodeError(f"Cannot decode gif frames: {e}") from e

    if not frames:
        raise EmptyFrameError("GIF has no frames")

    extra = {"loop": im.info["loop"]} if "loop" in im.info else {}
    buf = io.BytesIO()
    try:
        frames[0].save(
            buf,
            format="GIF",
            save_all=True,
            append_images=frames[1:],
            duration=durations,
            **extra,
        )
    except (OSError, ValueError) as e:
        raise EncodeError(f"Cannot encode gif: {e}") from e
    return buf.getvalue()


def crop_image(data: bytes, box: Box) -> Tuple[bytes, str]:
    """Crop source bytes to `box`; returns the encoded crop and its kind.

    Every frame of an animated GIF is cropped and re-encoded with its
    original delay.
    """
    im, kind = _open(data)
    if kind == "gif":
        return _crop_animated(im, box), kind

    try:
        im.load()
    except _DECODE_ERRORS as e:
        raise DecodeError(f"Cannot decode {kind} image: {e}") from e
    return encode(rect_crop(im, *box), kind), kind


# -------------------------------
# Derivative files
# -------------------------------
def write_atomic(path, data: bytes) -> None:
    """Replace `path` with `data` only once the bytes are fully written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=path.suffix)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except Exception:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def generate_thumbnail(im: PILImage.Image, kind: str, thumb_path, size: Optional[int] = None) -> None:
    data = encode(make_thumbnail(im, size), thumb_kind_for(kind))
    write_atomic(thumb_path, data)
    log.info("Wrote thumbnail %s (%d bytes)", thumb_path, len(data))


def ensure_thumbnail(image_path, thumb_path) -> bool:
    """Generate the thumbnail unless a file already exists at `thumb_path`.

    Returns True when a new thumbnail was written.
    """
    if Path(thumb_path).exists():
        return False

    im, kind = decode_first_frame(Path(image_path).read_bytes())
    generate_thumbnail(im, kind, thumb_path)
    return True
