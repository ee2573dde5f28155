"""Deployment reports."""

from shipctl.reporting.reporter import Reporter

__all__ = ["Reporter"]
