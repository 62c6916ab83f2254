import logging

from pairdist.config import DEFAULT_CONFIG, DistanceConfig
from pairdist.exceptions import (
    AllocationError,
    ComputationError,
    ConfigurationError,
    HarnessStateError,
    PairdistError,
    ToleranceViolation,
    WorkspaceError,
)
from pairdist.metrics import (
    DistanceType,
    FinalizeOp,
    IdentityFinalize,
    ThresholdFinalize,
    allocate_workspace,
    get_workspace_size,
    naive_distance,
    pairwise_distance,
    pairwise_sqeuclidean,
)
from pairdist.random import Rng

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
