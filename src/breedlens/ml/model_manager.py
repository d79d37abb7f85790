"""Model store: locate or download resources and open ONNX Runtime sessions.

Resources are looked up on local disk first. When a Hugging Face repository is
configured, missing files are downloaded into the models directory.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from huggingface_hub import hf_hub_download
from huggingface_hub.errors import HfHubHTTPError
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from breedlens.errors import ResourceLoadError

if TYPE_CHECKING:
    from breedlens.config import Settings

logger = logging.getLogger(__name__)


class ModelStore:
    """Resolves the model and label resources and builds inference sessions."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._models_dir = Path(settings.models_dir)
        self._paths: dict[str, Path] = {}

        self._providers = self._build_providers()

    # -- Public API ---------------------------------------------------------

    def resolve(self, resource: str) -> Path:
        """Return a local path for ``resource``, downloading it if needed.

        Raises:
            ResourceLoadError: If the file is not on disk and cannot be fetched.
        """
        cached = self._paths.get(resource)
        if cached is not None and cached.exists():
            return cached

        for candidate in (Path(resource), self._models_dir / resource):
            if candidate.is_file():
                self._paths[resource] = candidate
                return candidate

        repo_id = self._settings.model_repo_id
        if repo_id is None:
            raise ResourceLoadError(f"Could not locate {resource}")

        self._models_dir.mkdir(parents=True, exist_ok=True)
        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=repo_id,
                    filename=resource,
                    local_dir=str(self._models_dir),
                )
            )
        except (HfHubHTTPError, OSError, ValueError) as exc:
            raise ResourceLoadError(f"Could not download {resource} from {repo_id}: {exc}") from exc

        self._paths[resource] = downloaded
        logger.info("Downloaded %s to %s", resource, downloaded)
        return downloaded

    def open_session(self, model_path: Path, thread_count: int) -> InferenceSession:
        """Create an InferenceSession for ``model_path``.

        Raises:
            ResourceLoadError: If the runtime cannot initialize from the file.
        """
        try:
            session = InferenceSession(
                str(model_path),
                sess_options=self.build_session_options(thread_count),
                providers=self._providers,
            )
        except Exception as exc:  # noqa: BLE001 - pybind11 errors share no base
            raise ResourceLoadError(f"Failed to create the interpreter for {model_path}: {exc}") from exc

        logger.info("Loaded session for %s (threads=%d)", model_path, thread_count)
        return session

    @property
    def providers(self) -> list[str | tuple[str, dict[str, object]]]:
        return self._providers

    def build_session_options(self, thread_count: int) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = thread_count
        opts.inter_op_num_threads = 1
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            from onnxruntime import GraphOptimizationLevel

            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts

    # -- Internal -----------------------------------------------------------

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                (
                    "CUDAExecutionProvider",
                    {
                        "device_id": 0,
                        "arena_extend_strategy": "kSameAsRequested",
                    },
                ),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

