"""Shared fixtures: a tiny real ONNX model, its label file, and image helpers."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import onnx
import pytest
from onnx import TensorProto, helper
from PIL import Image

from breedlens.config import Settings
from breedlens.ml.image import RawImage

if TYPE_CHECKING:
    from pathlib import Path

CHANNEL_LABELS = ("red", "green", "blue")


def build_channel_mean_model(
    path: Path,
    batch: int | str = 1,
    height: int = 224,
    width: int = 224,
) -> Path:
    """Write an NHWC model whose three scores are the mean of each colour channel."""
    pixels = helper.make_tensor_value_info("pixels", TensorProto.FLOAT, [batch, height, width, 3])
    scores = helper.make_tensor_value_info("scores", TensorProto.FLOAT, [batch, 3])
    node = helper.make_node("ReduceMean", ["pixels"], ["scores"], axes=[1, 2], keepdims=0)
    graph = helper.make_graph([node], "channel_mean", [pixels], [scores])
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 7
    onnx.save(model, str(path))
    return path


def solid_image(width: int, height: int, rgba: tuple[int, int, int, int]) -> RawImage:
    return RawImage(width=width, height=height, data=bytes(rgba) * (width * height))


def encode_png(width: int, height: int, rgb: tuple[int, int, int]) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), rgb).save(buffer, format="PNG")
    return buffer.getvalue()


def make_settings(**overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "device": "cpu",
        "thread_count": 1,
        "max_concurrent": 2,
        "model_repo_id": None,
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


@pytest.fixture()
def model_path(tmp_path: Path) -> Path:
    return build_channel_mean_model(tmp_path / "model.onnx")


@pytest.fixture()
def labels_path(tmp_path: Path) -> Path:
    path = tmp_path / "labels.txt"
    path.write_text("\n".join(CHANNEL_LABELS) + "\n", encoding="utf-8")
    return path
