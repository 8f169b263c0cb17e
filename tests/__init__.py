"""Tests for the model promotion tooling.

Remote services are faked with ``httpx.MockTransport`` and the Azure CLI with
an in-memory resolver, so the suite runs without cloud access.
"""
