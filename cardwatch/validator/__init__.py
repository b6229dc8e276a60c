"""
Validator - Card Standards Enforcement

Receives Trello card events, evaluates the card standards that apply, and
chases violations until they are fixed.

Key Components:
- classify: Development vs. other cards, from labels
- select_rules: Event + category -> rules to apply
- RuleExecutor: Runs rules, aggregates a Verdict
- ViolationTracker: NoRecord / TrackedInvalid state machine over the store
- EventProcessor: Live webhook pipeline
- SweepProcessor: Periodic re-check with escalating warnings
"""

from .classifier import Category, classify
from .events import CardArchived, CardCreated, CardEvent, CardMoved, UnhandledEvent
from .rules import RULES, RuleContext, RuleName, RuleResult, RuleSettings
from .selector import RuleSelection, SelectionAction, select_rules, select_sweep_rules
from .executor import RuleExecutor, Verdict
from .store import (
    DuplicateRecordError,
    JsonViolationStore,
    RecordNotFoundError,
    StoreError,
    ViolationStore,
)
from .tracker import NoRecord, Origin, TrackedInvalid, TrackerAction, TrackerOutcome, ViolationTracker
from .processor import EventProcessor, ProcessorSettings
from .sweep import SweepProcessor, SweepReport

__all__ = [
    "Category",
    "classify",
    "CardArchived",
    "CardCreated",
    "CardEvent",
    "CardMoved",
    "UnhandledEvent",
    "RULES",
    "RuleContext",
    "RuleName",
    "RuleResult",
    "RuleSettings",
    "RuleSelection",
    "SelectionAction",
    "select_rules",
    "select_sweep_rules",
    "RuleExecutor",
    "Verdict",
    "DuplicateRecordError",
    "JsonViolationStore",
    "RecordNotFoundError",
    "StoreError",
    "ViolationStore",
    "NoRecord",
    "Origin",
    "TrackedInvalid",
    "TrackerAction",
    "TrackerOutcome",
    "ViolationTracker",
    "EventProcessor",
    "ProcessorSettings",
    "SweepProcessor",
    "SweepReport",
]
