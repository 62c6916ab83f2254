import torch


class Rng:
    """
    Seeded uniform sampler.

    Samples are drawn on CPU and copied to the buffer's device, so one seed
    gives bit-identical values on every device.
    """

    def __init__(self, seed: int):
        if seed < 0:
            raise ValueError("seed must be >= 0")
        self.seed = int(seed)
        self._gen = torch.Generator(device="cpu")
        self._gen.manual_seed(self.seed)

    def uniform(self, buffer: torch.Tensor, low: float = -1.0, high: float = 1.0) -> torch.Tensor:
        """Fill `buffer` in place with samples from U[low, high)."""
        if not isinstance(buffer, torch.Tensor):
            raise TypeError("buffer must be a torch tensor")
        if not high > low:
            raise ValueError("high must be > low")
        if buffer.numel() == 0:
            return buffer
        sample = torch.empty(buffer.shape, dtype=buffer.dtype)
        sample.uniform_(low, high, generator=self._gen)
        buffer.copy_(sample)
        return buffer
