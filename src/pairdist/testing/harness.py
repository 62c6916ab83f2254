"""
Reference-vs-accelerated verification.

DistanceTest drives one parametrized case through

    UNINITIALIZED -> INPUTS_GENERATED -> REFERENCE_COMPUTED
        -> UNDER_TEST_COMPUTED -> COMPARED -> RELEASED

and always reaches RELEASED, whichever transition fails.
"""

import logging
from dataclasses import dataclass
from enum import Enum

import torch

from pairdist.config import DEFAULT_CONFIG, DistanceConfig
from pairdist.exceptions import AllocationError, HarnessStateError, ToleranceViolation
from pairdist.metrics.epilogue import ThresholdFinalize
from pairdist.metrics.pairwise import allocate_workspace, get_workspace_size, pairwise_distance
from pairdist.metrics.reference import naive_distance
from pairdist.metrics.types import DistanceType
from pairdist.random import Rng
from pairdist.utils.device import is_oom, resolve_device, synchronize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DistanceInputs:
    tolerance: float
    m: int
    n: int
    k: int
    seed: int = 1234

    def __post_init__(self):
        if not self.tolerance > 0:
            raise ValueError("tolerance must be > 0")
        if min(self.m, self.n, self.k) < 0:
            raise ValueError("m, n and k must be >= 0")
        if self.seed < 0:
            raise ValueError("seed must be >= 0")

    def __str__(self):
        return f"m={self.m} n={self.n} k={self.k} tol={self.tolerance:g} seed={self.seed}"


class HarnessState(Enum):
    UNINITIALIZED = 0
    INPUTS_GENERATED = 1
    REFERENCE_COMPUTED = 2
    UNDER_TEST_COMPUTED = 3
    COMPARED = 4
    RELEASED = 5


def compare_matrices(expected, actual, tolerance, metric=None):
    """
    Element-wise |expected - actual| <= tolerance.

    Raises ToleranceViolation with the total mismatch count and the first
    ToleranceViolation.max_reported offending (i, j) with both values.
    NaN on either side counts as a mismatch.
    """
    if expected.shape != actual.shape:
        raise ValueError(f"shape mismatch: {tuple(expected.shape)} vs {tuple(actual.shape)}")

    if expected.numel() == 0:
        return

    diff = (expected - actual).abs()
    bad = ~(diff <= tolerance)
    if not bool(bad.any()):
        return

    total = int(bad.sum().item())
    idx = bad.nonzero()[: ToleranceViolation.max_reported].cpu()
    mismatches = [
        (i, j, expected[i, j].item(), actual[i, j].item()) for i, j in idx.tolist()
    ]
    raise ToleranceViolation(
        mismatches, tolerance, metric=metric, shape=tuple(expected.shape), total=total
    )


class DistanceTest:
    """
    One reference-vs-accelerated comparison.

    The side-channel output `dist2` receives the thresholded distances written
    by the finalize op; `dist` is the adapter's primary output.
    """

    def __init__(
        self,
        distance_type,
        params: DistanceInputs,
        dtype: torch.dtype = None,
        device=None,
        threshold: float = -10000.0,
        config: DistanceConfig = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.distance_type = DistanceType.parse(distance_type)
        self.params = params
        self.dtype = dtype or self.config.dtype
        self.device = resolve_device(device if device is not None else self.config.device)
        self.threshold = threshold
        self.state = HarnessState.UNINITIALIZED

        self.x = self.y = None
        self.dist_ref = self.dist = self.dist2 = None
        self.workspace = None
        self.worksize = 0

    def __repr__(self):
        return f"DistanceTest({self.distance_type.name}, {self.params}, state={self.state.name})"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    def _advance(self, expected: HarnessState, new: HarnessState):
        if self.state is not expected:
            raise HarnessStateError(
                f"cannot move to {new.name} from {self.state.name} (expected {expected.name})"
            )
        logger.debug("%r -> %s", self, new.name)
        self.state = new

    def _allocate(self, shape):
        try:
            return torch.empty(shape, dtype=self.dtype, device=self.device)
        except RuntimeError as exc:
            if is_oom(exc):
                raise AllocationError(f"cannot allocate {shape} on {self.device}") from exc
            raise

    def generate_inputs(self):
        if self.state is not HarnessState.UNINITIALIZED:
            raise HarnessStateError(f"inputs already generated; state is {self.state.name}")
        p = self.params
        rng = Rng(p.seed)
        self.x = rng.uniform(self._allocate((p.m, p.k)), -1.0, 1.0)
        self.y = rng.uniform(self._allocate((p.n, p.k)), -1.0, 1.0)
        self.dist_ref = self._allocate((p.m, p.n))
        self.dist = self._allocate((p.m, p.n))
        self.dist2 = self._allocate((p.m, p.n))
        self._advance(HarnessState.UNINITIALIZED, HarnessState.INPUTS_GENERATED)

    def compute_reference(self):
        if self.state is not HarnessState.INPUTS_GENERATED:
            raise HarnessStateError(f"reference needs inputs; state is {self.state.name}")
        naive_distance(self.x, self.y, self.distance_type, out=self.dist_ref, tile_shape=self.config.tile_shape)
        self._advance(HarnessState.INPUTS_GENERATED, HarnessState.REFERENCE_COMPUTED)

    def compute_under_test(self):
        if self.state is not HarnessState.REFERENCE_COMPUTED:
            raise HarnessStateError(f"adapter run needs the reference; state is {self.state.name}")

        self.worksize = get_workspace_size(self.distance_type, self.x, self.y)
        self.workspace = allocate_workspace(self.worksize, self.device)
        logger.debug("%r workspace=%d bytes", self, self.worksize)

        fin_op = ThresholdFinalize(self.dist2, self.threshold)
        try:
            pairwise_distance(
                self.distance_type,
                self.x,
                self.y,
                out=self.dist,
                workspace=self.workspace,
                fin_op=fin_op,
                batch_size=self.config.batch_size,
            )
            synchronize(self.device)
        finally:
            self._release_workspace()
        self._advance(HarnessState.REFERENCE_COMPUTED, HarnessState.UNDER_TEST_COMPUTED)

    def compare(self):
        if self.state is not HarnessState.UNDER_TEST_COMPUTED:
            raise HarnessStateError(f"nothing to compare; state is {self.state.name}")
        synchronize(self.device)
        try:
            compare_matrices(self.dist_ref, self.dist, self.params.tolerance, metric=self.distance_type)
        except ToleranceViolation as exc:
            logger.warning("%r: %d mismatches", self, exc.total)
            raise
        self._advance(HarnessState.UNDER_TEST_COMPUTED, HarnessState.COMPARED)

    def _release_workspace(self):
        if self.workspace is not None:
            synchronize(self.device)
            self.workspace = None

    def release(self):
        if self.state is HarnessState.RELEASED:
            return
        if self.x is not None:
            synchronize(self.device)
        # workspace goes before the matrices it was sized from
        self._release_workspace()
        self.x = self.y = None
        self.dist_ref = self.dist = self.dist2 = None
        logger.debug("%r -> RELEASED", self)
        self.state = HarnessState.RELEASED

    def run(self, keep: bool = False):
        """
        Drive every transition in order.

        With keep=True the matrices survive until release() (or the end of a
        `with` block) so callers can inspect them; otherwise they are released
        before returning.
        """
        try:
            self.generate_inputs()
            self.compute_reference()
            self.compute_under_test()
            self.compare()
        except BaseException:
            self.release()
            raise
        if not keep:
            self.release()
        return self
