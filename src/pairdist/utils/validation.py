import torch
import numpy as np


def as_tensor(X, device=None, dtype=None):
    """
    Convert a vector collection to a contiguous 2D torch tensor.

    dtype=None keeps the input precision (float32 and float64 are both valid).
    """

    if isinstance(X, np.ndarray):
        X = torch.from_numpy(X)

    if not isinstance(X, torch.Tensor):
        raise TypeError("Input must be numpy array or torch tensor")

    if dtype is not None:
        X = X.to(dtype=dtype)

    if device is not None:
        X = X.to(device)

    if X.ndim != 2:
        raise ValueError("Input must be 2D")

    return X.contiguous()


def check_pair(X, Y):
    """
    Validate a (query, reference) pair of vector collections.

    Returns (m, n, k). Zero-sized dimensions are allowed.
    """
    if not isinstance(X, torch.Tensor) or not isinstance(Y, torch.Tensor):
        raise TypeError("X and Y must be torch tensors")
    if X.ndim != 2 or Y.ndim != 2:
        raise ValueError("X and Y must be 2D tensors")
    if X.shape[1] != Y.shape[1]:
        raise ValueError("X and Y must have the same number of features")
    if X.device != Y.device:
        raise ValueError("X and Y must be on the same device")
    if X.dtype != Y.dtype:
        raise ValueError("X and Y must have the same dtype")
    if not X.dtype.is_floating_point:
        raise TypeError("X and Y must be floating point tensors")

    return X.shape[0], Y.shape[0], X.shape[1]


def check_output(out, m: int, n: int, like: torch.Tensor):
    """Validate a caller-provided (m, n) output matrix against the inputs."""
    if not isinstance(out, torch.Tensor):
        raise TypeError("out must be a torch tensor")
    if tuple(out.shape) != (m, n):
        raise ValueError(f"out must have shape ({m}, {n}), got {tuple(out.shape)}")
    if out.dtype != like.dtype:
        raise ValueError("out must have the same dtype as X and Y")
    if out.device != like.device:
        raise ValueError("out must be on the same device as X and Y")
    if not out.is_contiguous():
        raise ValueError("out must be contiguous")
