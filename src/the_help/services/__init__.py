"""Service layer — definitions, execution, callbacks and results.

Services may import from the domain layer and from errors.
They must never import from config.
"""
