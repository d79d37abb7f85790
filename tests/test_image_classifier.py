"""Tests for the end-to-end classification pipeline."""

from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from conftest import CHANNEL_LABELS, make_settings, solid_image

from breedlens.errors import ClassificationCancelledError, ImageBufferError, ShapeMismatchError
from breedlens.ml.engine import InferenceEngine
from breedlens.ml.image import RawImage
from breedlens.ml.image_classifier import ClassificationOutcome, ImageClassifier, OutcomeStatus


@pytest.fixture()
def classifier(model_path: Path) -> ImageClassifier:
    return ImageClassifier(InferenceEngine.load(model_path), CHANNEL_LABELS)


class TestClassify:
    @pytest.mark.parametrize(
        ("rgba", "expected"),
        [
            ((255, 0, 0, 255), "red"),
            ((0, 200, 10, 0), "green"),
            ((30, 60, 250, 128), "blue"),
        ],
    )
    def test_dominant_channel_wins(self, classifier: ImageClassifier, rgba: tuple[int, int, int, int], expected: str) -> None:
        result = classifier.classify(solid_image(320, 240, rgba))
        assert result.label == expected

    def test_confidence_is_raw_score(self, classifier: ImageClassifier) -> None:
        result = classifier.classify(solid_image(50, 80, (255, 0, 0, 255)))
        assert result.confidence == pytest.approx(1.0, abs=1e-5)

    def test_grey_image_ties_to_first_label(self, classifier: ImageClassifier) -> None:
        result = classifier.classify(solid_image(64, 64, (128, 128, 128, 255)))
        assert result.label == "red"
        assert result.confidence == pytest.approx(128 / 255, abs=1e-5)

    def test_only_center_square_is_seen(self, classifier: ImageClassifier) -> None:
        # Blue bars on the left and right, red square in the middle.
        width, height = 300, 100
        row = bytes((0, 0, 255, 255)) * 100 + bytes((255, 0, 0, 255)) * 100 + bytes((0, 0, 255, 255)) * 100
        image = RawImage(width=width, height=height, data=row * height)

        assert classifier.classify(image).label == "red"

    def test_zero_sized_image_raises(self, classifier: ImageClassifier) -> None:
        with pytest.raises(ImageBufferError):
            classifier.classify(RawImage(width=0, height=0, data=b""))

    def test_cancelled_before_start(self, classifier: ImageClassifier) -> None:
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ClassificationCancelledError, match="resampling"):
            classifier.classify(solid_image(8, 8, (0, 0, 0, 255)), cancel)

    def test_cancelled_between_stages_skips_model(self, model_path: Path) -> None:
        cancel = threading.Event()
        engine = InferenceEngine.load(model_path)
        extractor = MagicMock()
        extractor.extract.side_effect = lambda _thumb: cancel.set()
        pipeline = ImageClassifier(engine, CHANNEL_LABELS, extractor=extractor)
        engine_run = MagicMock(wraps=engine.run)
        engine.run = engine_run  # type: ignore[method-assign]

        with pytest.raises(ClassificationCancelledError, match="inference"):
            pipeline.classify(solid_image(8, 8, (0, 0, 0, 255)), cancel)
        engine_run.assert_not_called()


class TestTryClassify:
    def test_success_outcome(self, classifier: ImageClassifier) -> None:
        outcome = classifier.try_classify(solid_image(10, 10, (0, 0, 255, 255)))

        assert outcome.status is OutcomeStatus.SUCCEEDED
        assert outcome.classification is not None
        assert outcome.classification.label == "blue"
        assert outcome.error is None

    def test_failure_outcome(self, classifier: ImageClassifier) -> None:
        outcome = classifier.try_classify(RawImage(width=3, height=3, data=b"\x00"))

        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.classification is None
        assert outcome.error

    def test_not_attempted_outcome(self) -> None:
        outcome = ClassificationOutcome.not_attempted()
        assert outcome.status == "not_attempted"
        assert outcome.classification is None


class TestConstruction:
    def test_label_count_must_match_output_width(self, model_path: Path) -> None:
        with pytest.raises(ShapeMismatchError, match="3 scores but 2 labels"):
            ImageClassifier(InferenceEngine.load(model_path), ("red", "green"))

    def test_from_settings(self, model_path: Path, labels_path: Path) -> None:
        settings = make_settings(model_path=str(model_path), labels_path=str(labels_path))
        classifier = ImageClassifier.from_settings(settings)

        assert classifier is not None
        assert classifier.labels == CHANNEL_LABELS
        assert classifier.input_size == (224, 224)

    def test_from_settings_missing_model(self, tmp_path: Path, labels_path: Path) -> None:
        settings = make_settings(
            model_path=str(tmp_path / "absent.onnx"),
            labels_path=str(labels_path),
            models_dir=str(tmp_path),
        )
        assert ImageClassifier.from_settings(settings) is None

    def test_from_settings_missing_labels(self, tmp_path: Path, model_path: Path) -> None:
        settings = make_settings(
            model_path=str(model_path),
            labels_path=str(tmp_path / "absent.txt"),
            models_dir=str(tmp_path),
        )
        assert ImageClassifier.from_settings(settings) is None

    def test_from_settings_label_mismatch(self, tmp_path: Path, model_path: Path) -> None:
        labels = tmp_path / "two.txt"
        labels.write_text("red\ngreen\n", encoding="utf-8")
        settings = make_settings(model_path=str(model_path), labels_path=str(labels))

        assert ImageClassifier.from_settings(settings) is None

    def test_concurrent_calls_share_one_pipeline(self, classifier: ImageClassifier) -> None:
        images = [solid_image(40, 40, rgba) for rgba in [(255, 0, 0, 255), (0, 255, 0, 255), (0, 0, 255, 255)] * 4]
        results: list[str] = [""] * len(images)

        def work(i: int) -> None:
            results[i] = classifier.classify(images[i]).label

        threads = [threading.Thread(target=work, args=(i,)) for i in range(len(images))]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == list(CHANNEL_LABELS) * 4
