"""Pipeline stage scripts for promoting Document Intelligence models.

Scripts include:
- ``promote_model.py``: copy a model from a source service to a target service.
- ``backup_model.py``: back up a model's metadata before it is replaced.
- ``validate_model.py``: check model presence, configuration, and accuracy.
- ``run_model_tests.py``: smoke or integration tests against a deployed model.
- ``update_registry.py``: record a deployment in the registry.

Every script exits 0 on full success and 1 on any failure.
"""
