from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

from seqalloc.core.modules.counter.models import CounterOptions
from seqalloc.core.modules.history.models import HistoryOptions
from seqalloc.core.store.memory import DEFAULT_MAX_ITEM_SIZE


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    backend: Literal["mongo", "memory"] = "mongo"
    database_url: str = "mongodb://localhost:27017/seqalloc"  # Database name is taken from the URL path
    host: str = "127.0.0.1"
    port: int = 3100
    debug: bool = False
    max_item_size: int = DEFAULT_MAX_ITEM_SIZE  # Item size limit of the memory backend, in bytes
    max_attempts: int | None = Field(None, ge=1)  # Bound on guarded allocation attempts; unbounded when unset
    # Named sequences and histories, given as JSON objects
    sequences: dict[str, CounterOptions] = {}
    histories: dict[str, HistoryOptions] = {}

    model_config = {
        "env_file": [".env"],
        "env_prefix": "SEQALLOC_",
        "extra": "ignore",
    }
