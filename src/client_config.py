from dataclasses import dataclass, field
from typing import List


@dataclass
class ClientConfig:
    """Client configuration container."""
    host: str = "127.0.0.1"
    port: int = 6379
    read_chunk_size: int = 4096
    debug: bool = False
    commands: List[str] = field(default_factory=list)
    prompt: str = ">> "
