"""seqdx: terminal client for the sequential diagnosis agent backend."""

__version__ = "0.1.0"
