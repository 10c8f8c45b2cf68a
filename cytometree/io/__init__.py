"""I/O utilities for cytometree.

Provides event matrix loading and validation, CSV output, and logging.
"""

from .logging import (
    append_run_history,
    get_logger,
    get_timestamped_log_path,
    read_run_history,
    write_run_record,
)
from .csv import (
    ensure_output_dir,
    load_event_matrix,
    load_label_column,
    marker_columns,
    write_dataframe,
)
from .validation import (
    InputValidationError,
    default_marker_names,
    validate_event_matrix,
)

__all__ = [
    # Logging
    "get_logger",
    "get_timestamped_log_path",
    "append_run_history",
    "read_run_history",
    "write_run_record",
    # CSV I/O
    "ensure_output_dir",
    "load_event_matrix",
    "load_label_column",
    "marker_columns",
    "write_dataframe",
    # Validation
    "InputValidationError",
    "default_marker_names",
    "validate_event_matrix",
]
