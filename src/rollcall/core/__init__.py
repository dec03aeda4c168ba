"""Pure scheduling and roster logic plus on-disk locations."""

from .config import APP_NAME, DATA_DIR, DEFAULT_STATE_CONTENT, STATE_FILE, ensure_data_dir
from .recurrence import next_occurrence, runtime_to_hours
from .roster import ReconciliationPlan, detect_promotion, partition, plan_reconciliation

__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "DEFAULT_STATE_CONTENT",
    "STATE_FILE",
    "ReconciliationPlan",
    "detect_promotion",
    "ensure_data_dir",
    "next_occurrence",
    "partition",
    "plan_reconciliation",
    "runtime_to_hours",
]
