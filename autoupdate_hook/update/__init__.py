"""
Update Invocation
=================
Runs the container update command and normalizes its output.
"""

from .models import UpdateRecord, UpdateRecordList, UpdateState
from .invoker import DEFAULT_UPDATE_COMMAND, CommandOutput, UpdateInvoker, parse_update_output

__all__ = [
    "UpdateRecord",
    "UpdateRecordList",
    "UpdateState",
    "DEFAULT_UPDATE_COMMAND",
    "CommandOutput",
    "UpdateInvoker",
    "parse_update_output",
]
