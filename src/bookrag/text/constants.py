"""Chunk sizing defaults."""

# Hard ceiling applied to any requested max_tokens
MAX_CHUNK_TOKENS = 300
MIN_CHUNK_TOKENS = 50

# Fraction of max_tokens carried into the next chunk
CHUNK_OVERLAP_RATIO = 0.2

# Requested bounds used by the ingestion pipeline
PIPELINE_MIN_TOKENS = 50
PIPELINE_MAX_TOKENS = 400

# A section is considered for splitting after this many lines
MAX_SECTION_LINES = 50

# Floors for keeping short trailing content
TRAILING_SECTION_FLOOR = 50
SHORT_CHUNK_FLOOR = 30
PLAIN_CHUNK_FLOOR = 100

# Character windows assume roughly one token per character at worst
CHARS_PER_TOKEN_WINDOW = 0.8
