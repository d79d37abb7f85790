"""Image preprocessing: thumbnail resampling and pixel extraction.

Turns an arbitrary RGBA image into the flat float32 tensor the model expects:
a centered square crop scaled to the input size, alpha dropped, and each
channel byte mapped into [0.0, 1.0].
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

import numpy as np
from PIL import Image

from breedlens.errors import ImageBufferError, ShapeMismatchError
from breedlens.ml.image import BYTES_PER_PIXEL, RawImage, Thumbnail

if TYPE_CHECKING:
    from numpy.typing import NDArray

NUM_CHANNELS = 3
ALPHA_OFFSET = 3

ResampleFilter = Literal["nearest", "bilinear", "bicubic", "lanczos"]

_FILTERS: dict[str, Image.Resampling] = {
    "nearest": Image.Resampling.NEAREST,
    "bilinear": Image.Resampling.BILINEAR,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
}


def center_square(width: int, height: int) -> tuple[int, int, int, int]:
    """Return the (left, top, right, bottom) box of the largest centered square."""
    side = min(width, height)
    left = (width - side) // 2
    top = (height - side) // 2
    return (left, top, left + side, top + side)


class ImageResampler:
    """Produces fixed-size center-cropped thumbnails."""

    def __init__(self, resample_filter: ResampleFilter = "bilinear") -> None:
        try:
            self._filter = _FILTERS[resample_filter]
        except KeyError:
            raise ValueError(f"Unknown resample filter: {resample_filter}") from None

    def resample(self, image: RawImage, target_size: tuple[int, int]) -> Thumbnail:
        """Crop the largest centered square from ``image`` and scale it to ``target_size``.

        Raises:
            ImageBufferError: If the image is zero-sized or its buffer is malformed,
                or the target size is not positive.
        """
        target_width, target_height = target_size
        if target_width <= 0 or target_height <= 0:
            raise ImageBufferError(f"Invalid target size {target_width}x{target_height}")

        source = image.to_pil()
        box = center_square(image.width, image.height)
        # Resize colour and alpha apart: Pillow premultiplies RGBA during resampling.
        rgb = source.convert("RGB").resize(target_size, self._filter, box=box)
        alpha = source.getchannel("A").resize(target_size, self._filter, box=box)
        scaled = Image.merge("RGBA", (*rgb.split(), alpha))
        return Thumbnail(width=scaled.width, height=scaled.height, data=scaled.tobytes())


class PixelExtractor:
    """Converts an RGBA thumbnail into a normalized RGB float32 tensor."""

    def __init__(self, input_width: int, input_height: int) -> None:
        self._input_width = input_width
        self._input_height = input_height

    @property
    def tensor_length(self) -> int:
        return self._input_width * self._input_height * NUM_CHANNELS

    def extract(self, thumbnail: RawImage) -> NDArray[np.float32]:
        """Drop the alpha byte of every pixel and scale the rest by 1/255.

        Returns:
            A 1-D float32 array of ``width * height * 3`` values in row-major,
            channel-interleaved R,G,B order.

        Raises:
            ShapeMismatchError: If the thumbnail is not the model input size.
            ImageBufferError: If the buffer length is not a whole number of
                pixels or disagrees with the declared dimensions.
        """
        if (thumbnail.width, thumbnail.height) != (self._input_width, self._input_height):
            raise ShapeMismatchError(
                f"Thumbnail is {thumbnail.width}x{thumbnail.height}, "
                f"model expects {self._input_width}x{self._input_height}"
            )

        raw = np.frombuffer(thumbnail.data, dtype=np.uint8)
        if raw.size % BYTES_PER_PIXEL != 0:
            raise ImageBufferError(f"Buffer length {raw.size} is not a multiple of {BYTES_PER_PIXEL}")
        if raw.size != thumbnail.width * thumbnail.height * BYTES_PER_PIXEL:
            raise ImageBufferError(
                f"Buffer holds {raw.size // BYTES_PER_PIXEL} pixels, "
                f"expected {thumbnail.width * thumbnail.height}"
            )

        pixels = raw.reshape(-1, BYTES_PER_PIXEL)
        rgb = np.delete(pixels, ALPHA_OFFSET, axis=1)
        return rgb.reshape(-1).astype(np.float32) / np.float32(255.0)
