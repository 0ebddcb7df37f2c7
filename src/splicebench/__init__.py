"""Splicebench: TPC-H provisioning and benchmark harness for Splice Machine."""

__version__ = "0.3.0"
