# Archive container
ARCHIVE_MAGIC = b"PKGARC\x00\x00"  # 8 bytes
ARCHIVE_VERSION_MAJOR = 1
ARCHIVE_VERSION_MINOR = 0

ENTRY_SYNC = b"PKE\x00"

KIND_FILE = 0
KIND_DIR = 1

COPY_BUFSIZE = 64 * 1024

# Compression
ALGO_GZIP = "gzip"
ALGO_BROTLI = "brotli"
ALGO_DEFLATE = "deflate"

ALGORITHMS = (ALGO_GZIP, ALGO_BROTLI, ALGO_DEFLATE)
DEFAULT_ALGORITHM = ALGO_GZIP

MIN_LEVEL = 1
MAX_LEVEL = 9
DEFAULT_ZLIB_LEVEL = 6
DEFAULT_BROTLI_QUALITY = 11

EXTENSION_ALGORITHMS = {
    ".gz": ALGO_GZIP,
    ".gzip": ALGO_GZIP,
    ".tgz": ALGO_GZIP,
    ".br": ALGO_BROTLI,
    ".brotli": ALGO_BROTLI,
    ".deflate": ALGO_DEFLATE,
    ".zz": ALGO_DEFLATE,
    ".zlib": ALGO_DEFLATE,
}

# Staging / package suffixes
ARCHIVE_TMP_SUFFIX = ".archive.tmp"
DECOMPRESSED_TMP_SUFFIX = ".decompressed.tmp"
PACKAGE_ARCHIVE_SUFFIX = ".archive"
SIGNATURE_SUFFIX = ".sig"

# Ed25519
SIGNATURE_SIZE = 64
KEY_CURVE = "Ed25519"
PRIVATE_KEY_MODE = 0o600

# Server
SERVER_NAME = "packager"
UNKNOWN_ERROR = "Unknown error"
