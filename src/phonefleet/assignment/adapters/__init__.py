"""Adapters layer - PostgreSQL implementation of the assignment ports."""

from .postgres_assignment_repo import PostgresAssignmentRepository

__all__ = ["PostgresAssignmentRepository"]
