"""
Naive reference distances.

Each kernel maps a tile of query rows (tm, k) and a tile of reference rows
(tn, k) to the (tm, tn) block of distances. Every output element depends only
on its own pair of rows, so the tile grid has no effect on the result.
Accumulation stays in the input dtype.
"""

import logging

import torch

from pairdist.config import DEFAULT_CONFIG
from pairdist.exceptions import AllocationError, ComputationError, ConfigurationError
from pairdist.metrics.types import DistanceType
from pairdist.utils.device import is_oom
from pairdist.utils.validation import as_tensor, check_output, check_pair

logger = logging.getLogger(__name__)


def l1_kernel(x_tile: torch.Tensor, y_tile: torch.Tensor) -> torch.Tensor:
    a = x_tile[:, None, :]
    b = y_tile[None, :, :]
    diff = torch.where(a > b, a - b, b - a)
    return diff.sum(dim=2)


def l2_kernel(x_tile: torch.Tensor, y_tile: torch.Tensor, sqrt: bool = False) -> torch.Tensor:
    diff = x_tile[:, None, :] - y_tile[None, :, :]
    acc = (diff * diff).sum(dim=2)
    if sqrt:
        acc = torch.sqrt(acc)
    return acc


def cosine_kernel(x_tile: torch.Tensor, y_tile: torch.Tensor) -> torch.Tensor:
    """
    Cosine similarity x.y / (||x|| ||y||).

    A zero-norm row on either side gives 0 instead of NaN.
    """
    a = x_tile[:, None, :]
    b = y_tile[None, :, :]

    acc_a = (a * a).sum(dim=2)  # (tm, 1)
    acc_b = (b * b).sum(dim=2)  # (1, tn)
    acc_ab = (a * b).sum(dim=2)  # (tm, tn)

    denom = torch.sqrt(acc_a) * torch.sqrt(acc_b)
    nonzero = denom > 0
    safe = torch.where(nonzero, denom, torch.ones_like(denom))
    sim = torch.where(nonzero, acc_ab / safe, torch.zeros_like(acc_ab))
    return sim.clamp_(-1.0, 1.0)


def _kernel_for(metric: DistanceType):
    if metric is DistanceType.UNEXPANDED_L1:
        return l1_kernel
    if metric in (
        DistanceType.UNEXPANDED_L2,
        DistanceType.UNEXPANDED_L2_SQRT,
        DistanceType.EXPANDED_L2,
        DistanceType.EXPANDED_L2_SQRT,
    ):
        sqrt = metric.is_sqrt
        return lambda x_tile, y_tile: l2_kernel(x_tile, y_tile, sqrt=sqrt)
    if metric is DistanceType.EXPANDED_COSINE:
        return cosine_kernel
    raise ConfigurationError(f"no reference kernel for metric {metric!r}")


def tile_grid(m: int, n: int, tile_shape):
    """Yield (row_slice, col_slice) for every tile, clipped to the (m, n) domain."""
    tm, tn = tile_shape
    if tm <= 0 or tn <= 0:
        raise ConfigurationError(f"tile_shape must be positive, got {tile_shape}")
    for i0 in range(0, m, tm):
        rows = slice(i0, min(i0 + tm, m))
        for j0 in range(0, n, tn):
            yield rows, slice(j0, min(j0 + tn, n))


@torch.no_grad()
def naive_distance(X, Y, metric, out=None, tile_shape=None) -> torch.Tensor:
    """
    Reference distances between rows of X (m, k) and rows of Y (n, k).

    Returns D with shape (m, n), D[i, j] = metric(X[i], Y[j]).
    Writes into `out` when given.
    """
    X = as_tensor(X)
    Y = as_tensor(Y)
    m, n, k = check_pair(X, Y)
    metric = DistanceType.parse(metric)
    tile_shape = tuple(tile_shape or DEFAULT_CONFIG.tile_shape)
    kernel = _kernel_for(metric)

    if out is None:
        try:
            out = torch.empty((m, n), device=X.device, dtype=X.dtype)
        except RuntimeError as exc:
            if is_oom(exc):
                raise AllocationError(f"cannot allocate ({m}, {n}) output") from exc
            raise
    else:
        check_output(out, m, n, X)

    logger.debug("naive_distance metric=%s m=%d n=%d k=%d tile=%s", metric.name, m, n, k, tile_shape)

    try:
        for rows, cols in tile_grid(m, n, tile_shape):
            out[rows, cols] = kernel(X[rows], Y[cols])
    except RuntimeError as exc:
        if is_oom(exc):
            raise AllocationError(f"out of memory computing {metric.name}") from exc
        raise ComputationError(
            f"{metric.name} failed for m={m} n={n} k={k}: {exc}",
            metric=metric,
            shape=(m, n, k),
        ) from exc

    return out
