"""Concrete ``ReconRepository`` implementations."""

from prepaid_kernel.repositories.memory import InMemoryRepository
from prepaid_kernel.repositories.sql import SqlAlchemyRepository

__all__ = ["InMemoryRepository", "SqlAlchemyRepository"]
