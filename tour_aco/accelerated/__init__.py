"""
tour_aco.accelerated — device-offloaded colony engine (torch).

Public API:
    AcceleratedColonyOptimizer   — same contract as ColonyOptimizer
    load_kernel_module           — resolve construct/update kernels
    resolve_device               — validate a torch device string
    KernelModuleNotFoundError    — no compatible kernel module
    AcceleratorUnavailableError  — requested device missing

Importing this package imports torch; tour_aco itself does not.
"""

from tour_aco.accelerated.colony import AcceleratedColonyOptimizer
from tour_aco.accelerated.loader import (
    AcceleratorUnavailableError,
    KernelModuleNotFoundError,
    load_kernel_module,
    resolve_device,
)

__all__ = [
    "AcceleratedColonyOptimizer",
    "AcceleratorUnavailableError",
    "KernelModuleNotFoundError",
    "load_kernel_module",
    "resolve_device",
]
