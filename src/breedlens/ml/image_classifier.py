"""Image classification pipeline.

resample -> extract -> run -> rank, as one synchronous call chain. The pipeline
holds no per-call state, so one instance is shared by every worker thread.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from breedlens.errors import ClassificationCancelledError, ClassificationError, ShapeMismatchError
from breedlens.ml.engine import InferenceEngine
from breedlens.ml.labels import LabelCatalog, LabelSet
from breedlens.ml.model_manager import ModelStore
from breedlens.ml.preprocessing import ImageResampler, PixelExtractor
from breedlens.ml.ranking import Classification, ResultRanker

if TYPE_CHECKING:
    import threading

    from breedlens.config import Settings
    from breedlens.ml.image import RawImage

logger = logging.getLogger(__name__)


class OutcomeStatus(StrEnum):
    NOT_ATTEMPTED = "not_attempted"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class ClassificationOutcome:
    """Result of one classification attempt."""

    status: OutcomeStatus
    classification: Classification | None = None
    error: str | None = None

    @classmethod
    def not_attempted(cls) -> ClassificationOutcome:
        return cls(status=OutcomeStatus.NOT_ATTEMPTED)

    @classmethod
    def failed(cls, error: str) -> ClassificationOutcome:
        return cls(status=OutcomeStatus.FAILED, error=error)

    @classmethod
    def succeeded(cls, classification: Classification) -> ClassificationOutcome:
        return cls(status=OutcomeStatus.SUCCEEDED, classification=classification)


def _check_cancelled(cancel_event: threading.Event | None, stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ClassificationCancelledError(f"Cancelled before {stage}")


class ImageClassifier:
    """Classifies a single image into one of the catalog's labels."""

    def __init__(
        self,
        engine: InferenceEngine,
        labels: LabelSet,
        resampler: ImageResampler | None = None,
        extractor: PixelExtractor | None = None,
        ranker: ResultRanker | None = None,
    ) -> None:
        if engine.num_outputs is not None and engine.num_outputs != len(labels):
            raise ShapeMismatchError(f"Model produces {engine.num_outputs} scores but {len(labels)} labels were loaded")

        _, height, width, _ = engine.input_shape
        self._engine = engine
        self._labels = labels
        self._input_size = (width, height)
        self._resampler = resampler or ImageResampler()
        self._extractor = extractor or PixelExtractor(width, height)
        self._ranker = ranker or ResultRanker()

    @classmethod
    def from_settings(cls, settings: Settings) -> ImageClassifier | None:
        """Build the pipeline from configuration.

        Returns ``None`` when the model or labels cannot be loaded, which
        disables classification for the lifetime of the process.
        """
        store = ModelStore(settings)
        try:
            labels = LabelCatalog.load(store.resolve(settings.labels_path))
            model_path = store.resolve(settings.model_path)
        except ClassificationError as exc:
            logger.error("Classifier disabled: %s", exc)
            return None

        engine = InferenceEngine.try_load(
            model_path,
            settings.thread_count,
            input_size=(settings.input_width, settings.input_height),
            store=store,
        )
        if engine is None:
            return None

        try:
            return cls(
                engine,
                labels,
                resampler=ImageResampler(settings.resample_filter),
            )
        except ShapeMismatchError as exc:
            logger.error("Classifier disabled: %s", exc)
            return None

    @property
    def engine(self) -> InferenceEngine:
        return self._engine

    @property
    def labels(self) -> LabelSet:
        return self._labels

    @property
    def input_size(self) -> tuple[int, int]:
        return self._input_size

    def classify(self, image: RawImage, cancel_event: threading.Event | None = None) -> Classification:
        """Run the full pipeline on ``image``.

        ``cancel_event`` is checked between stages; a model execution already
        in flight is not interrupted.

        Raises:
            ClassificationError: Any per-call failure, including cancellation.
        """
        _check_cancelled(cancel_event, "resampling")
        thumbnail = self._resampler.resample(image, self._input_size)

        _check_cancelled(cancel_event, "pixel extraction")
        tensor = self._extractor.extract(thumbnail)

        _check_cancelled(cancel_event, "inference")
        scores = self._engine.run(tensor)

        _check_cancelled(cancel_event, "ranking")
        return self._ranker.top_result(scores, self._labels)

    def try_classify(self, image: RawImage, cancel_event: threading.Event | None = None) -> ClassificationOutcome:
        """Like :meth:`classify`, but report failures as a ``failed`` outcome."""
        try:
            classification = self.classify(image, cancel_event)
        except ClassificationError as exc:
            logger.warning("Classification failed: %s", exc)
            return ClassificationOutcome.failed(str(exc))
        return ClassificationOutcome.succeeded(classification)
