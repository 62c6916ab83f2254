import logging

import torch

from pairdist.config import DEFAULT_CONFIG
from pairdist.exceptions import AllocationError, ComputationError, WorkspaceError
from pairdist.metrics.epilogue import FinalizeOp
from pairdist.metrics.types import DistanceType
from pairdist.utils.device import is_oom
from pairdist.utils.validation import as_tensor, check_output, check_pair

logger = logging.getLogger(__name__)


def get_workspace_size(metric, X: torch.Tensor, Y: torch.Tensor) -> int:
    """
    Scratch bytes pairwise_distance needs for (metric, X, Y).

    Expanded metrics keep one norm per row of X and Y; the others need none.
    """
    X = as_tensor(X)
    Y = as_tensor(Y)
    m, n, _ = check_pair(X, Y)
    metric = DistanceType.parse(metric)
    if not metric.is_expanded:
        return 0
    return (m + n) * X.element_size()


def allocate_workspace(size: int, device) -> torch.Tensor:
    """Byte buffer for pairwise_distance; None when no workspace is needed."""
    if size <= 0:
        return None
    try:
        return torch.empty((size,), dtype=torch.uint8, device=device)
    except RuntimeError as exc:
        if is_oom(exc):
            raise AllocationError(f"cannot allocate {size} byte workspace") from exc
        raise


def _row_norms(workspace, X, Y, squared: bool):
    """
    Row norms of X and Y, staged through the workspace as raw bytes.

    The workspace may start at any byte offset, so it is never viewed as X.dtype.
    """
    m = X.shape[0]
    norms = torch.cat(((X * X).sum(dim=1), (Y * Y).sum(dim=1)))
    if not squared:
        norms.sqrt_()
    nbytes = norms.numel() * norms.element_size()
    workspace[:nbytes].copy_(norms.view(torch.uint8))
    return norms[:m], norms[m:]


def _sq_diff_sum(xb, Y, chunk_elems: int = 1 << 24):
    # direct subtraction, chunked over query rows to bound the (rows, n, k) temporary
    n, k = Y.shape
    rows = max(1, chunk_elems // max(1, n * k))
    out = torch.empty((xb.shape[0], n), device=xb.device, dtype=xb.dtype)
    for start in range(0, xb.shape[0], rows):
        diff = xb[start:start + rows, None, :] - Y[None, :, :]
        out[start:start + rows] = (diff * diff).sum(dim=2)
    return out


def _block(metric, xb, Y, x_norm, y_norm):
    if metric is DistanceType.UNEXPANDED_L1:
        return torch.cdist(xb, Y, p=1.0)

    if metric in (DistanceType.UNEXPANDED_L2, DistanceType.UNEXPANDED_L2_SQRT):
        if metric.is_sqrt:
            return torch.cdist(xb, Y, p=2.0, compute_mode="donot_use_mm_for_euclid_dist")
        return _sq_diff_sum(xb, Y)

    cross = xb @ Y.t()  # (b, n)

    if metric is DistanceType.EXPANDED_COSINE:
        denom = x_norm.unsqueeze(1) * y_norm.unsqueeze(0)
        nonzero = denom > 0
        sim = torch.where(nonzero, cross / torch.where(nonzero, denom, torch.ones_like(denom)), torch.zeros_like(cross))
        return sim.clamp_(-1.0, 1.0)

    d = x_norm.unsqueeze(1) + y_norm.unsqueeze(0) - 2.0 * cross
    d.clamp_min_(0.0)
    if metric.is_sqrt:
        d.sqrt_()
    return d


@torch.no_grad()
def pairwise_distance(
    metric,
    X: torch.Tensor,
    Y: torch.Tensor,
    out: torch.Tensor = None,
    workspace: torch.Tensor = None,
    fin_op: FinalizeOp = None,
    batch_size: int = None,
) -> torch.Tensor:
    """
    Distances between rows of X and rows of Y.

    Returns D with shape (m, n):
      D[i, j] = fin_op(metric(X[i], Y[j]), i * n + j)

    Batches over X to reduce peak memory. `workspace` must be a uint8 tensor
    of at least get_workspace_size(metric, X, Y) bytes.
    """
    X = as_tensor(X)
    Y = as_tensor(Y)
    m, n, k = check_pair(X, Y)
    metric = DistanceType.parse(metric)
    batch_size = DEFAULT_CONFIG.batch_size if batch_size is None else batch_size
    if batch_size <= 0:
        raise ValueError("batch_size must be > 0")

    required = get_workspace_size(metric, X, Y)
    provided = 0
    if workspace is not None:
        if workspace.dtype != torch.uint8 or workspace.device != X.device:
            raise ValueError("workspace must be a uint8 tensor on the same device as X")
        provided = workspace.numel()
    if provided < required:
        raise WorkspaceError(required, provided)

    if out is None:
        try:
            out = torch.empty((m, n), device=X.device, dtype=X.dtype)
        except RuntimeError as exc:
            if is_oom(exc):
                raise AllocationError(f"cannot allocate ({m}, {n}) output") from exc
            raise
    else:
        check_output(out, m, n, X)

    logger.debug(
        "pairwise_distance metric=%s m=%d n=%d k=%d workspace=%d/%d",
        metric.name, m, n, k, provided, required,
    )

    if m == 0 or n == 0:
        return out

    try:
        x_norm = y_norm = None
        if metric.is_expanded:
            squared = metric is not DistanceType.EXPANDED_COSINE
            x_norm, y_norm = _row_norms(workspace, X, Y, squared=squared)

        for start in range(0, m, batch_size):
            end = min(start + batch_size, m)
            if k == 0:
                d = torch.zeros((end - start, n), device=X.device, dtype=X.dtype)
            else:
                xn = None if x_norm is None else x_norm[start:end]
                d = _block(metric, X[start:end], Y, xn, y_norm)

            if fin_op is not None:
                idx = torch.arange(start * n, end * n, device=X.device, dtype=torch.long).view(end - start, n)
                d = fin_op(d, idx)

            out[start:end] = d
    except RuntimeError as exc:
        if is_oom(exc):
            raise AllocationError(f"out of memory computing {metric.name}") from exc
        raise ComputationError(
            f"{metric.name} failed for m={m} n={n} k={k}: {exc}",
            metric=metric,
            shape=(m, n, k),
        ) from exc

    return out


@torch.no_grad()
def pairwise_sqeuclidean(X: torch.Tensor, Y: torch.Tensor, batch_size: int = 4096) -> torch.Tensor:
    """
    Squared Euclidean distances between rows of X and rows of Y.

    Returns D with shape (n_x, n_y):
      D[i, j] = ||X[i] - Y[j]||^2

    Allocates its own workspace.
    """
    X = as_tensor(X)
    Y = as_tensor(Y)
    size = get_workspace_size(DistanceType.EXPANDED_L2, X, Y)
    workspace = allocate_workspace(size, X.device)
    return pairwise_distance(DistanceType.EXPANDED_L2, X, Y, workspace=workspace, batch_size=batch_size)
