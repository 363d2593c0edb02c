# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Public import surface for tracing marker components."""

from tracemark import engine
from tracemark.batch import BatchRunner, Document, DocumentResult
from tracemark.config import Configuration, ConfigurationError
from tracemark.model import ACTIONS, Action, Diagnostic, FunctionRecord, Mismatch
from tracemark.planner import EditPlanError
from tracemark.reporter import CheckReport, Outcome, RewriteReport

__all__ = [
    "ACTIONS",
    "Action",
    "BatchRunner",
    "CheckReport",
    "Configuration",
    "ConfigurationError",
    "Diagnostic",
    "Document",
    "DocumentResult",
    "EditPlanError",
    "FunctionRecord",
    "Mismatch",
    "Outcome",
    "RewriteReport",
    "engine",
]
