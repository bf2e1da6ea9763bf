"""
Runtime configuration.
Every knob is read once from the environment (or a local .env file).
"""
import os
from dotenv import load_dotenv

load_dotenv()  # loads .env in local dev; no effect in Docker if env vars provided


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# -------------------------------------------------
# Storage
# -------------------------------------------------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./embeddings.db")
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads")
MAX_FILE_SIZE_BYTES = int(os.getenv("MAX_FILE_SIZE_BYTES", str(10 * 1024 * 1024)))  # 10 MB

# -------------------------------------------------
# Embeddings
# -------------------------------------------------
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "ollama")  # "ollama" or "sentence-transformers"
EMBED_MODEL = os.getenv("EMBED_MODEL", "nomic-embed-text")
OLLAMA_URL = os.getenv("OLLAMA_URL", "http://localhost:11434")
OLLAMA_PULL_ON_STARTUP = _env_bool("OLLAMA_PULL_ON_STARTUP", True)
# nomic-embed-text has a context length of 8192 tokens
EMBED_MAX_INPUT_TOKENS = int(os.getenv("EMBED_MAX_INPUT_TOKENS", "8192"))
EMBED_TIMEOUT_SECONDS = float(os.getenv("EMBED_TIMEOUT_SECONDS", "60"))

# -------------------------------------------------
# Chunking
# -------------------------------------------------
MAX_TOKENS_PER_CHUNK = int(os.getenv("MAX_TOKENS_PER_CHUNK", "500"))
OVERLAP_TOKENS = int(os.getenv("OVERLAP_TOKENS", "100"))
# 1 token ~ 0.75 words; shared by chunking, context budgets and provider pre-flight
WORDS_PER_TOKEN = float(os.getenv("WORDS_PER_TOKEN", "0.75"))

# -------------------------------------------------
# Retrieval
# -------------------------------------------------
DEFAULT_TOP_K = int(os.getenv("DEFAULT_TOP_K", "5"))
MAX_TOP_K = int(os.getenv("MAX_TOP_K", "10"))
TOP_K_BEFORE_RERANK = int(os.getenv("TOP_K_BEFORE_RERANK", "20"))
TEXT_SIMILARITY_THRESHOLD = float(os.getenv("TEXT_SIMILARITY_THRESHOLD", "0.65"))
CODE_SIMILARITY_THRESHOLD = float(os.getenv("CODE_SIMILARITY_THRESHOLD", "0.45"))
USE_LEXICAL_BOOST = _env_bool("USE_LEXICAL_BOOST", True)
MAX_CONTEXT_TOKENS = int(os.getenv("MAX_CONTEXT_TOKENS", "2000"))

# -------------------------------------------------
# Reranking
# -------------------------------------------------
USE_RERANKING = _env_bool("USE_RERANKING", False)
RERANKER_URL = os.getenv("RERANKER_URL", "https://router.huggingface.co/models")
RERANKER_MODEL = os.getenv("RERANKER_MODEL", "BAAI/bge-reranker-v2-m3")
HF_API_KEY = os.getenv("HF_API_KEY") or None
RERANK_THRESHOLD = float(os.getenv("RERANK_THRESHOLD", "0.5"))
RERANK_TIMEOUT_SECONDS = float(os.getenv("RERANK_TIMEOUT_SECONDS", "30"))

# -------------------------------------------------
# Ingestion progress
# -------------------------------------------------
PROGRESS_TTL_SECONDS = float(os.getenv("PROGRESS_TTL_SECONDS", "30"))

# -------------------------------------------------
# Logging
# -------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
JSON_LOGS = _env_bool("JSON_LOGS", False)
