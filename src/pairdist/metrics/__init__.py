from pairdist.metrics.types import DistanceType
from pairdist.metrics.epilogue import FinalizeOp, IdentityFinalize, ThresholdFinalize
from pairdist.metrics.reference import naive_distance
from pairdist.metrics.pairwise import (
    allocate_workspace,
    get_workspace_size,
    pairwise_distance,
    pairwise_sqeuclidean,
)

__all__ = [
    "DistanceType",
    "FinalizeOp",
    "IdentityFinalize",
    "ThresholdFinalize",
    "naive_distance",
    "allocate_workspace",
    "get_workspace_size",
    "pairwise_distance",
    "pairwise_sqeuclidean",
]
