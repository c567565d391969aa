from .consistency import ConsistencyGuard
from .token_strategy import TokenAcquisitionStrategy

__all__ = [
    "ConsistencyGuard",
    "TokenAcquisitionStrategy",
]
