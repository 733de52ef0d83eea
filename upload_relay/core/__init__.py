"""
Core upload pipeline logic.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or any infrastructure concerns. The publisher only sees an ``ObjectStore``
protocol, so it can be tested with an in-memory store.
"""
