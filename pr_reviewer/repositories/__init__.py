# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Repository package — contracts plus the SQL and in-memory storage."""
from pr_reviewer.repositories.base import Transaction, Transactor
from pr_reviewer.repositories.memory_repository import InMemoryRepository
from pr_reviewer.repositories.sql_repository import SqlRepository

__all__ = ["Transaction", "Transactor", "InMemoryRepository", "SqlRepository"]
