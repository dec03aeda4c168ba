from __future__ import annotations

from pathlib import Path

import orjson
from platformdirs import user_data_dir

APP_NAME = "Rollcall"
APP_AUTHOR = "Rollcall"
DATA_DIR = Path(user_data_dir(APP_NAME, APP_AUTHOR))
STATE_FILE = DATA_DIR / "rollcall_state.json"
DEFAULT_STATE_CONTENT = {
    "events": {},
    "registrations": {},
    "metadata": {"schema_version": 1},
}


def ensure_data_dir(state_file: Path = STATE_FILE) -> None:
    state_file.parent.mkdir(parents=True, exist_ok=True)
    if not state_file.exists():
        state_file.write_bytes(orjson.dumps(DEFAULT_STATE_CONTENT, option=orjson.OPT_INDENT_2) + b"\n")
