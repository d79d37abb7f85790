"""Inference engine: owns one ONNX Runtime session and runs forward passes.

The engine only exists in the loaded state. Each call allocates its own input
and output tensors, so a single engine can serve concurrent calls; the
underlying session is shared read-only.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from breedlens.config import Settings
from breedlens.errors import InferenceError, ResourceLoadError, ShapeMismatchError
from breedlens.ml.model_manager import ModelStore
from breedlens.ml.preprocessing import NUM_CHANNELS

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray
    from onnxruntime import InferenceSession

logger = logging.getLogger(__name__)

FLOAT_TENSOR_TYPE = "tensor(float)"


def _resolve_shape(declared: list[int | str | None], template: tuple[int, ...]) -> tuple[int, ...]:
    """Fill symbolic dimensions of ``declared`` from ``template``."""
    return tuple(dim if isinstance(dim, int) and dim > 0 else fallback for dim, fallback in zip(declared, template))


class InferenceEngine:
    """A loaded image classification model."""

    def __init__(
        self,
        session: InferenceSession,
        model_path: Path,
        thread_count: int = 1,
        input_size: tuple[int, int] = (224, 224),
    ) -> None:
        self._session = session
        self._model_path = model_path
        self._thread_count = thread_count

        inputs = session.get_inputs()
        outputs = session.get_outputs()
        if len(inputs) != 1 or len(outputs) < 1:
            raise ResourceLoadError(
                f"Model {model_path} must have one input and at least one output, "
                f"got {len(inputs)} and {len(outputs)}"
            )

        model_input = inputs[0]
        if model_input.type != FLOAT_TENSOR_TYPE:
            raise ResourceLoadError(f"Model input is {model_input.type}, expected {FLOAT_TENSOR_TYPE}")
        if len(model_input.shape) != 4:
            raise ResourceLoadError(f"Model input has rank {len(model_input.shape)}, expected 4 (NHWC)")

        width, height = input_size
        self._input_name: str = model_input.name
        self._input_shape = _resolve_shape(model_input.shape, (1, height, width, NUM_CHANNELS))
        if self._input_shape[0] != 1 or self._input_shape[3] != NUM_CHANNELS:
            raise ResourceLoadError(
                f"Model input shape {self._input_shape} is not 1xHxWx{NUM_CHANNELS} (NHWC)"
            )
        self._output_name: str = outputs[0].name

        # Output width is only known up front when every non-batch dim is static.
        output_dims = list(outputs[0].shape)[1:]
        if output_dims and all(isinstance(dim, int) for dim in output_dims):
            self._num_outputs: int | None = math.prod(output_dims)
        else:
            self._num_outputs = None

    @classmethod
    def load(
        cls,
        model_path: str | Path,
        thread_count: int = 1,
        *,
        input_size: tuple[int, int] = (224, 224),
        store: ModelStore | None = None,
    ) -> InferenceEngine:
        """Load the model artifact at ``model_path``.

        Raises:
            ResourceLoadError: If the file cannot be located or the runtime fails
                to initialize from it.
            ValueError: If ``thread_count`` is not positive.
        """
        if thread_count < 1:
            raise ValueError(f"thread_count must be positive, got {thread_count}")

        path = Path(model_path)
        if not path.is_file():
            raise ResourceLoadError(f"Could not locate file {path}")

        if store is None:
            # Defaults only: a library call must not depend on BREEDLENS_* variables.
            store = ModelStore(Settings.model_construct())
        session = store.open_session(path, thread_count)
        return cls(session, path, thread_count=thread_count, input_size=input_size)

    @classmethod
    def try_load(
        cls,
        model_path: str | Path,
        thread_count: int = 1,
        *,
        input_size: tuple[int, int] = (224, 224),
        store: ModelStore | None = None,
    ) -> InferenceEngine | None:
        """Like :meth:`load`, but log and return ``None`` when the engine is unavailable."""
        try:
            return cls.load(model_path, thread_count, input_size=input_size, store=store)
        except ResourceLoadError as exc:
            logger.error("Inference engine unavailable: %s", exc)
            return None

    # -- Properties ---------------------------------------------------------

    @property
    def model_path(self) -> Path:
        return self._model_path

    @property
    def thread_count(self) -> int:
        return self._thread_count

    @property
    def input_shape(self) -> tuple[int, ...]:
        return self._input_shape

    @property
    def input_capacity(self) -> int:
        """Number of float32 values the input tensor holds."""
        return math.prod(self._input_shape)

    @property
    def providers(self) -> list[str]:
        """Execution providers the session actually runs on."""
        return list(self._session.get_providers())

    @property
    def num_outputs(self) -> int | None:
        """Declared score count, or ``None`` if the model leaves it dynamic."""
        return self._num_outputs

    # -- Inference ----------------------------------------------------------

    def run(self, tensor: ArrayLike) -> NDArray[np.float32]:
        """Execute one forward pass and return the flat score vector.

        Blocks the calling thread until the model finishes.

        Raises:
            ShapeMismatchError: If ``tensor`` does not exactly fill the input
                tensor. The model is not invoked in that case.
            InferenceError: If the runtime fails or returns an unexpected
                number of scores.
        """
        values = np.asarray(tensor, dtype=np.float32).reshape(-1)
        if values.size != self.input_capacity:
            raise ShapeMismatchError(
                f"Input has {values.size} values, model input {self._input_shape} holds {self.input_capacity}"
            )

        input_tensor = np.empty(self._input_shape, dtype=np.float32)
        input_tensor.reshape(-1)[:] = values

        try:
            outputs = self._session.run([self._output_name], {self._input_name: input_tensor})
        except Exception as exc:  # noqa: BLE001 - pybind11 errors share no base
            raise InferenceError(f"Model execution failed: {exc}") from exc

        scores = np.array(outputs[0], dtype=np.float32).reshape(-1)
        if self._num_outputs is not None and scores.size != self._num_outputs:
            raise InferenceError(f"Model returned {scores.size} scores, expected {self._num_outputs}")
        return scores
