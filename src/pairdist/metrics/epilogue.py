"""
Finalize operations applied to raw distances before they are stored.

A finalize op sees a block of raw distances together with the flat row-major
output index of each element (i * n + j). It returns the values to store in
the primary output and may write to side buffers it owns.
"""

import torch


class FinalizeOp:
    """Per-element finalize strategy, applied block-wise."""

    def apply(self, values: torch.Tensor, indices: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError

    def __call__(self, values: torch.Tensor, indices: torch.Tensor) -> torch.Tensor:
        if values.shape != indices.shape:
            raise ValueError("values and indices must have the same shape")
        return self.apply(values, indices)


class IdentityFinalize(FinalizeOp):
    def apply(self, values, indices):
        return values


class ThresholdFinalize(FinalizeOp):
    """
    Pass-through for the primary output; thresholded copy into `side_out`.

      side_out.flat[idx] = 0        if value < threshold
                         = value    otherwise
    """

    def __init__(self, side_out: torch.Tensor, threshold: float):
        if not isinstance(side_out, torch.Tensor):
            raise TypeError("side_out must be a torch tensor")
        if not side_out.is_contiguous():
            raise ValueError("side_out must be contiguous")
        self.side_out = side_out
        self.threshold = threshold

    def apply(self, values, indices):
        flat = self.side_out.view(-1)
        kept = torch.where(values < self.threshold, torch.zeros_like(values), values)
        flat[indices.reshape(-1)] = kept.reshape(-1).to(flat.dtype)
        return values
