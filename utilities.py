import inspect
import os
import time
from datetime import datetime, timezone

import psutil
from rich import print as _print

# logType -> (opening symbol, closing symbol, rich style)
LOG_TYPES = {
    'SUCCESS': ('^^^', '^^^', 'green'),
    'FAILURE': ('###', '###', 'red bold'),
    'STATE': ('~~~', '~~~', 'cyan'),
    'INFO': ('---', '---', 'blue'),
    'HEADER': ('===', '===', 'magenta'),
    'EXCEPTION': ('!!!', '!!!', 'red bold'),
    'WARNING': ('(((', ')))', 'yellow'),
    'DEBUG': ('[[[', ']]]', 'white'),
    'ATTEMPT': ('???', '???', 'cyan'),
    'STARTING': ('>>>', '>>>', 'green'),
    'PROGRESS': ('vvv', 'vvv', 'blue'),
    'COMPLETED': ('<<<', '<<<', 'green'),
}

FUNCTION_NAME_PADDING = 32


def Print(logType: str, message: str) -> None:
    """
    Prints a log line: UTC timestamp, symbol-wrapped logType, caller name, message.
    """
    try:
        timestamp = datetime.fromtimestamp(time.time(), tz=timezone.utc).isoformat(timespec='microseconds')

        logTypeUpper = logType.upper()
        before_symbol, after_symbol, style = LOG_TYPES.get(logTypeUpper, ('', '', ''))

        formattedLogType = f"{before_symbol} {logTypeUpper} {after_symbol}".strip()
        if style:
            formattedLogType = f"[{style}]{formattedLogType}[/{style}]"

        function_name = inspect.stack()[1].function.ljust(FUNCTION_NAME_PADDING)

        _print(f"{timestamp} {formattedLogType} {function_name} {message}")

    except Exception as e:
        print(f"Something went wrong when attempting to print.\nError: {e}")


def format_bytes(size: int) -> str:
    """Human readable byte count (KB/MB use 1024)."""
    if size < 1024:
        return f"{size:,} B"
    if size < 1024 ** 2:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 ** 2):.2f} MB"


def memory_usage() -> str:
    """
    Returns a string with the resident memory of the current process.
    """
    current_process = psutil.Process(os.getpid())
    memory_usage_mb = current_process.memory_info().rss / (1024 ** 2)
    return f"Process Memory Usage: {memory_usage_mb:.2f} MB"
