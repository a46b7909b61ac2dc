"""onnxruntime session wrapper shared by the detector and the recognizer."""

import logging
import os
from pathlib import Path
from typing import List, Union

import numpy as np
import onnxruntime
from onnxruntime.capi import _pybind_state as C

logger = logging.getLogger(__name__)

_TENSORRT = "TensorrtExecutionProvider"
_CUDA = "CUDAExecutionProvider"
_CPU = "CPUExecutionProvider"


def select_providers(use_gpu: bool = False, use_tensorrt: bool = False) -> List:
    """Execution providers in priority order: TensorRT, CUDA, then CPU.

    Requested accelerators that this onnxruntime build lacks are skipped
    with a warning. CPU is always last.
    """
    available = C.get_available_providers()
    providers = []

    for wanted, name, options in (
        (use_tensorrt, _TENSORRT, {}),
        (use_gpu, _CUDA, {"cudnn_conv_algo_search": "DEFAULT"}),
    ):
        if not wanted:
            continue
        if name in available:
            providers.append((name, options))
        else:
            logger.warning("%s requested but not available, skipping", name)

    providers.append(_CPU)
    return providers


def session_options() -> onnxruntime.SessionOptions:
    options = onnxruntime.SessionOptions()
    options.graph_optimization_level = onnxruntime.GraphOptimizationLevel.ORT_ENABLE_ALL
    options.enable_mem_pattern = True
    options.enable_cpu_mem_arena = True
    # Half the cores for parallel graph branches
    options.inter_op_num_threads = max(1, (os.cpu_count() or 2) // 2)
    return options


class ONNXInferenceBase:
    """One model, one image tensor in, first output out.

    Tensor names come from the model metadata, so any detector or
    recognizer exported with a single image input works unchanged.
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        use_gpu: bool = False,
        use_tensorrt: bool = False,
    ):
        """
        Args:
            model_path: Path to ONNX model file
            use_gpu: Enable CUDA GPU acceleration
            use_tensorrt: Enable TensorRT acceleration (requires TensorRT)

        Raises:
            FileNotFoundError: If the model file does not exist
        """
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(f"Model not found: {model_path}")

        self.session = onnxruntime.InferenceSession(
            str(self.model_path),
            session_options(),
            providers=select_providers(use_gpu, use_tensorrt),
        )
        self.input_name = self.session.get_inputs()[0].name
        self.output_name = self.session.get_outputs()[0].name
        logger.info(
            "Loaded %s on %s (%s -> %s)",
            self.model_path.name, self.session.get_providers()[0],
            self.input_name, self.output_name,
        )

    def run_single(self, tensor: np.ndarray) -> np.ndarray:
        """Feed one NCHW float32 tensor and return the first output."""
        return self.session.run([self.output_name], {self.input_name: tensor})[0]

    def __repr__(self):
        return f"ONNXInferenceBase({self.model_path.name})"
