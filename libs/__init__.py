"""Shared libraries for the model promotion tooling.

Subpackages:
- ``libs.common``: configuration, logging, metrics, and events.
- ``libs.docintel``: Document Intelligence clients and promotion workflows.

Usage:
- Import reusable functionality from here to keep the stage scripts lean.

Notes:
- Avoid stage-specific CLI logic; keep modules cohesive and broadly useful.
"""
