from .logger import setup_logging
from .hashing import sha256_hash, short_id
from .tokenization import normalize_text, tokenize

__all__ = ["setup_logging", "sha256_hash", "short_id", "normalize_text", "tokenize"]
