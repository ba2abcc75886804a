"""Auditory models."""

from torch_lindemann.models.lindemann1986 import Lindemann1986

__all__ = ["Lindemann1986"]
