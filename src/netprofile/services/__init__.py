"""Service layer — profile operations returning ServiceResult.

Services may import from domain, config and plugins.
The domain layer must never import from services.
"""
