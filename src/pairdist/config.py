"""Runtime knobs shared by the dispatcher, the adapter and the harness."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import torch

from pairdist.exceptions import ConfigurationError

_DTYPES = {
    "float32": torch.float32,
    "float": torch.float32,
    "float64": torch.float64,
    "double": torch.float64,
}


@dataclass(frozen=True)
class DistanceConfig:
    # (rows of x, rows of y) covered by one reference tile
    tile_shape: Tuple[int, int] = (16, 32)
    # query rows per adapter batch
    batch_size: int = 4096
    device: Optional[str] = None
    dtype: torch.dtype = torch.float32

    def __post_init__(self):
        if len(self.tile_shape) != 2 or min(self.tile_shape) <= 0:
            raise ConfigurationError(f"tile_shape must be two positive ints, got {self.tile_shape}")
        if self.batch_size <= 0:
            raise ConfigurationError("batch_size must be > 0")
        if self.dtype not in (torch.float32, torch.float64):
            raise ConfigurationError(f"unsupported dtype: {self.dtype}")

    def with_overrides(self, **changes) -> "DistanceConfig":
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ=None) -> "DistanceConfig":
        """
        Build a config from PAIRDIST_* environment variables.

          PAIRDIST_DEVICE      e.g. "cpu", "cuda:0"
          PAIRDIST_DTYPE       float32 | float64
          PAIRDIST_BATCH_SIZE  positive int
          PAIRDIST_TILE_SHAPE  "16x32"
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        if env.get("PAIRDIST_DEVICE"):
            kwargs["device"] = env["PAIRDIST_DEVICE"]

        if env.get("PAIRDIST_DTYPE"):
            name = env["PAIRDIST_DTYPE"].strip().lower()
            if name not in _DTYPES:
                raise ConfigurationError(f"PAIRDIST_DTYPE must be float32 or float64, got {name!r}")
            kwargs["dtype"] = _DTYPES[name]

        if env.get("PAIRDIST_BATCH_SIZE"):
            kwargs["batch_size"] = _parse_int("PAIRDIST_BATCH_SIZE", env["PAIRDIST_BATCH_SIZE"])

        if env.get("PAIRDIST_TILE_SHAPE"):
            raw = env["PAIRDIST_TILE_SHAPE"].lower().split("x")
            if len(raw) != 2:
                raise ConfigurationError(f"PAIRDIST_TILE_SHAPE must look like 16x32, got {raw!r}")
            kwargs["tile_shape"] = tuple(_parse_int("PAIRDIST_TILE_SHAPE", v) for v in raw)

        return cls(**kwargs)


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None


DEFAULT_CONFIG = DistanceConfig()
