"""Pixel buffer types passed through the classification pipeline."""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from breedlens.errors import ImageBufferError

BYTES_PER_PIXEL = 4
PIXEL_MODE = "RGBA"
SIXTEEN_BIT_MODES = ("I", "I;16", "I;16B", "I;16L", "I;16N")


@dataclass(frozen=True)
class RawImage:
    """An immutable, interleaved R,G,B,A byte buffer."""

    width: int
    height: int
    data: bytes

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @classmethod
    def from_pil(cls, image: Image.Image) -> RawImage:
        """Capture a Pillow image, converting it to RGBA first if needed."""
        if image.mode in SIXTEEN_BIT_MODES:
            # convert() clips wide samples at 255; rescale to 8 bits first.
            image = image.convert("I").point(lambda v: v / 256).convert("L")
        rgba = image if image.mode == PIXEL_MODE else image.convert(PIXEL_MODE)
        return cls(width=rgba.width, height=rgba.height, data=rgba.tobytes())

    @classmethod
    def from_bytes(cls, payload: bytes, max_pixels: int | None = None) -> RawImage:
        """Decode encoded image file bytes (JPEG, PNG, ...).

        EXIF orientation is applied, so the buffer is upright as displayed.

        Raises:
            ImageBufferError: If the payload is not a decodable image or has
                more than ``max_pixels`` pixels.
        """
        try:
            with Image.open(io.BytesIO(payload)) as image:
                if max_pixels is not None and image.width * image.height > max_pixels:
                    raise ImageBufferError(
                        f"Image has {image.width * image.height} pixels, limit is {max_pixels}"
                    )
                image.load()
                return cls.from_pil(ImageOps.exif_transpose(image))
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
            raise ImageBufferError(f"Cannot decode image: {exc}") from exc

    def to_pil(self) -> Image.Image:
        """Wrap the buffer as a Pillow image.

        Raises:
            ImageBufferError: If the image is zero-sized or the buffer length does
                not match the declared dimensions.
        """
        if self.width <= 0 or self.height <= 0:
            raise ImageBufferError(f"Image has no pixels ({self.width}x{self.height})")
        expected = self.width * self.height * BYTES_PER_PIXEL
        if len(self.data) != expected:
            raise ImageBufferError(
                f"Buffer holds {len(self.data)} bytes, expected {expected} for "
                f"{self.width}x{self.height} {PIXEL_MODE}"
            )
        return Image.frombytes(PIXEL_MODE, self.size, self.data)


@dataclass(frozen=True)
class Thumbnail(RawImage):
    """A RawImage already resampled to the model's input size."""
