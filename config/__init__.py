from config.config import Config
from config import constants
from config.logger import logger, setup_logging
from config.strings import Strings

__all__ = [
    "Config",
    "constants",  # expose constants module only
    "logger",
    "setup_logging",
    "Strings",
]
