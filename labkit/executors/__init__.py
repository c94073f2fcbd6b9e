"""
Executors package for labkit.

Executors run plans step by step against the vendor CLI tools.
"""

from .base import (
    ExecutionContext,
    ExecutionStatus,
    Executor,
    ExecutorConfig,
    ExecutorError,
    StepExecution,
)
from .concrete_executor import ConcreteExecutor
from .references import StepReferenceError, evaluate_condition, resolve_references

__all__ = [
    "ConcreteExecutor",
    "ExecutionContext",
    "ExecutionStatus",
    "Executor",
    "ExecutorConfig",
    "ExecutorError",
    "StepExecution",
    "StepReferenceError",
    "evaluate_condition",
    "resolve_references",
]
