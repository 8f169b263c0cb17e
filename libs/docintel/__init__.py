"""Document Intelligence model lifecycle: copy, validate, test, back up, register.

Modules:
- ``endpoints``: service lookup and endpoint/key resolution via the Azure CLI.
- ``client``: async REST client for ``documentModels`` endpoints.
- ``operations``: operation handles, status tracking, and the poll loop.
- ``orchestrator``: cross-environment model promotion.
- ``validation``, ``environment_tests``, ``reports``: checks and their reports.
- ``backup``, ``registry``: file-based backups and deployment records.

Import pattern:
- from libs.docintel.orchestrator import ModelPromotionOrchestrator
"""
