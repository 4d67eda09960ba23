# config.py
"""
Application configuration constants for Batch Resizer
"""

# Settings defaults
DEFAULT_WIDTH = 900
DEFAULT_HEIGHT = 900
DEFAULT_CROP_POSITION = "Crop Bottom Middle"
DEFAULT_SPACE_SIZE = 200
DEFAULT_SPACE_POSITION = "bottom"
DEFAULT_FORMAT = "webp"

# Output formats and their encoders
OUTPUT_FORMATS = ['webp', 'jpg', 'png']
MIME_TYPES = {
    'webp': 'image/webp',
    'jpg': 'image/jpeg',
    'png': 'image/png',
}

# Quality ladder (0-100 scale, 90 == 0.9)
QUALITY_START = 90
QUALITY_STEP = 10
QUALITY_FLOOR = 10
WEBP_METHOD = 4
PNG_COMPRESS_LEVEL = 6

# Background colour behind the composited image and the margin strip
BACKGROUND_COLOR = (255, 255, 255)

# Decode settings
DECODE_TIMEOUT_SECS = 30
INPUT_IMAGE_EXTENSIONS = ['.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp']
ARCHIVE_INPUT_EXTENSIONS = ['.zip']

# Archive settings
ARCHIVE_FILENAME = "processed_images.zip"
ARCHIVE_FALLBACK_EXTENSION = "jpg"
ARCHIVE_ENTRY_TIMESTAMP = (1980, 1, 1, 0, 0, 0)
COLLISION_POLICIES = ['overwrite', 'rename']
DEFAULT_COLLISION_POLICY = 'overwrite'

# Concurrency
DEFAULT_MAX_WORKERS = 1
MAX_WORKERS_LIMIT = 8

# Logging
LOGGER_NAMES = ("resizer", "imaging")
LOG_FILENAME = "batch_resizer.log"
LOG_PATH_ENV = "BATCH_RESIZER_LOG"
LOG_MAX_BYTES = 1_048_576
LOG_BACKUP_COUNT = 5
