from enum import Enum

from pairdist.exceptions import ConfigurationError


class DistanceType(Enum):
    """
    Supported metric variants.

    "Expanded" variants may be computed as ||x||^2 + ||y||^2 - 2 x.y and are
    expected to agree with their "Unexpanded" counterparts within tolerance.
    """

    UNEXPANDED_L1 = "unexpanded_l1"
    UNEXPANDED_L2 = "unexpanded_l2"
    UNEXPANDED_L2_SQRT = "unexpanded_l2_sqrt"
    EXPANDED_L2 = "expanded_l2"
    EXPANDED_L2_SQRT = "expanded_l2_sqrt"
    EXPANDED_COSINE = "expanded_cosine"

    @property
    def is_expanded(self) -> bool:
        return self in _EXPANDED

    @property
    def is_sqrt(self) -> bool:
        return self in (DistanceType.UNEXPANDED_L2_SQRT, DistanceType.EXPANDED_L2_SQRT)

    @classmethod
    def parse(cls, metric) -> "DistanceType":
        """Resolve an enum member, its name or its value; anything else is fatal."""
        if isinstance(metric, cls):
            return metric
        if isinstance(metric, str):
            key = metric.strip()
            for member in cls:
                if key == member.value or key.upper() == member.name:
                    return member
        raise ConfigurationError(f"unrecognized metric: {metric!r}")


_EXPANDED = frozenset(
    (DistanceType.EXPANDED_L2, DistanceType.EXPANDED_L2_SQRT, DistanceType.EXPANDED_COSINE)
)
