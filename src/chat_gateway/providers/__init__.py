"""Vendor adapters translating streaming replies into text fragments."""

from .base import ProviderAdapter
from .registry import ProviderRegistry

__all__ = ["ProviderAdapter", "ProviderRegistry"]
