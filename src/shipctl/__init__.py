"""shipctl - quota-aware release orchestration for serverless hosting platforms."""

__version__ = "0.4.0"
