"""
tour_aco/accelerated/loader.py
──────────────────────────────
Resolve the kernel module and the device before a run touches either.

Both lookups fail fast with a ConfigurationError subclass. There is no
fallback to the host engine: a caller who asked for the accelerator and
cannot have it hears about it instead of silently getting something else.
"""

from __future__ import annotations

import importlib
import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Optional

import torch

from tour_aco.config import ConfigurationError

DEFAULT_KERNEL_MODULE: str = "tour_aco.accelerated.kernels"
"""Module used when AcceleratorConfig.kernel_module is None."""

KERNEL_ENTRY_POINTS = ("construct_tours", "update_pheromones")
"""Callables a kernel module must expose."""

SUPPORTED_DEVICE_TYPES = ("cpu", "cuda")
"""Device types with float64 support for every op the kernels use."""


class KernelModuleNotFoundError(ConfigurationError):
    """
    Raised when no compatible kernel module can be loaded.

    Compatible = importable (or a readable .py file) AND exposes every
    name in KERNEL_ENTRY_POINTS as a callable.

    Attributes:
        module: the name or path that was requested.
        reason: why it was rejected.
    """

    def __init__(self, module: str, reason: str) -> None:
        self.module = module
        self.reason = reason
        super().__init__(f"No usable kernel module '{module}': {reason}")


class AcceleratorUnavailableError(ConfigurationError):
    """
    Raised when the requested device does not exist on this machine.

    Attributes:
        device: the requested device string.
        reason: why it is unusable.
    """

    def __init__(self, device: str, reason: str) -> None:
        self.device = device
        self.reason = reason
        super().__init__(f"Device '{device}' is unavailable: {reason}")


def _load_from_file(path: Path) -> ModuleType:
    if not path.is_file():
        raise KernelModuleNotFoundError(str(path), "file not found")
    spec = importlib.util.spec_from_file_location(f"_tour_aco_kernels_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise KernelModuleNotFoundError(str(path), "not a loadable Python module")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise KernelModuleNotFoundError(str(path), f"failed to execute: {exc!r}") from exc
    return module


def load_kernel_module(name: Optional[str] = None) -> ModuleType:
    """
    Import a kernel module by dotted name or .py path.

    Args:
        name: dotted module name, path to a .py file, or None for
              DEFAULT_KERNEL_MODULE.

    Raises:
        KernelModuleNotFoundError: not importable, fails while importing, or
                                   an entry point is missing / not callable.
    """
    target = name or DEFAULT_KERNEL_MODULE

    if target.endswith(".py"):
        module = _load_from_file(Path(target))
    else:
        try:
            module = importlib.import_module(target)
        except ImportError as exc:
            raise KernelModuleNotFoundError(target, str(exc)) from exc
        except Exception as exc:
            # import-time failure inside the module itself (SyntaxError, RuntimeError, ...)
            raise KernelModuleNotFoundError(target, f"failed to import: {exc!r}") from exc

    missing = [
        entry for entry in KERNEL_ENTRY_POINTS
        if not callable(getattr(module, entry, None))
    ]
    if missing:
        raise KernelModuleNotFoundError(
            target, f"missing entry point(s): {', '.join(missing)}"
        )
    return module


def resolve_device(name: str) -> torch.device:
    """
    Parse and check a device string.

    Raises:
        AcceleratorUnavailableError: unparseable string, unsupported device
                                     type, CUDA absent, or index out of range.
    """
    try:
        device = torch.device(name)
    except (RuntimeError, TypeError) as exc:
        raise AcceleratorUnavailableError(name, str(exc)) from exc

    if device.type not in SUPPORTED_DEVICE_TYPES:
        raise AcceleratorUnavailableError(
            name, f"unsupported device type '{device.type}'"
        )
    if device.type == "cuda":
        if not torch.cuda.is_available():
            raise AcceleratorUnavailableError(name, "CUDA is not available")
        if device.index is not None and device.index >= torch.cuda.device_count():
            raise AcceleratorUnavailableError(
                name, f"only {torch.cuda.device_count()} CUDA device(s) present"
            )
    return device


def synchronize(device: torch.device) -> None:
    """Block the host until every launch queued on device has finished."""
    if device.type == "cuda":
        torch.cuda.synchronize(device)
