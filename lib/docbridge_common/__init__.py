"""Common Library

Shared components for the DocBridge document import webhook.
"""

from docbridge_common import constants
from docbridge_common.config import ConfigurationManager, ImportSettings
from docbridge_common.logging_utils import log_summary, safe_log_event
from docbridge_common.result import Err, ErrorKind, Ok, PipelineError

__all__ = [
    "ConfigurationManager",
    "Err",
    "ErrorKind",
    "ImportSettings",
    "Ok",
    "PipelineError",
    "constants",
    "log_summary",
    "safe_log_event",
]
