from enum import Enum

# Longest text block forwarded to the response channel in one embed
MAX_CHUNK_LENGTH = 2048

# Questions every freshly created survey starts with
DEFAULT_QUESTIONS = ["Question1", "Question2", "Question3"]

# Log file rotation
LOG_FILE_NAME = "bot.log"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3


class EmbedColor(Enum):
    """Embed colours used by each kind of notification (RGB values)."""
    SUCCESS = 0x2ECC71
    ERROR = 0xE74C3C
    QUESTION = 0x11806A
    TRANSCRIPT = 0x11806A
