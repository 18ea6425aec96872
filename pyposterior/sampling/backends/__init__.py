"""Sampler backends."""

from pyposterior.sampling.backends.cpu import CPUMetropolisBackend

__all__ = ["CPUMetropolisBackend"]
