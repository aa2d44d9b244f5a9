"""Read-only selectors."""

from siteflow_kernel.selectors.base import BaseSelector

__all__ = ["BaseSelector"]
