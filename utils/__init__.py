from utils.json_files import parse_body, read_json_file, write_json_file
from utils.logger import setup_logging, log_debug, log_info, log_success, log_warning, log_error

__all__ = [
    "parse_body",
    "read_json_file",
    "write_json_file",
    "setup_logging",
    "log_debug",
    "log_info",
    "log_success",
    "log_warning",
    "log_error",
]
