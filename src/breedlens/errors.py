"""Exception hierarchy for the classification pipeline."""

from __future__ import annotations


class ClassificationError(Exception):
    """Base class for all pipeline errors."""


class ResourceLoadError(ClassificationError):
    """The model artifact or the label file is missing or cannot be loaded."""


class ImageBufferError(ClassificationError):
    """The image buffer is zero-sized, malformed, or cannot be addressed."""


class ShapeMismatchError(ClassificationError):
    """A tensor, image, or score vector does not have the expected size."""


class InferenceError(ClassificationError):
    """The runtime failed while executing the model."""


class ClassificationCancelledError(ClassificationError):
    """The call was cancelled between pipeline stages."""
