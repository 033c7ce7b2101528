from .acp import ACPAdapter
from .ucp import UCPAdapter
from .x402 import X402Adapter

__all__ = ["ACPAdapter", "UCPAdapter", "X402Adapter"]
