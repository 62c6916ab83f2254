from pairdist.utils.device import resolve_device, synchronize
from pairdist.utils.validation import as_tensor, check_pair

__all__ = ["as_tensor", "check_pair", "resolve_device", "synchronize"]
