"""Configuration management using Pydantic settings."""

from typing import Dict, Optional, Tuple
from pydantic import Field, validator
from pydantic_settings import BaseSettings

# Message start bytes written in front of every block in blk*.dat files
NETWORK_MAGIC: Dict[str, bytes] = {
    "mainnet": bytes.fromhex("f9beb4d9"),
    "testnet3": bytes.fromhex("0b110907"),
    "testnet4": bytes.fromhex("1c163f28"),
    "signet": bytes.fromhex("0a03cf40"),
    "regtest": bytes.fromhex("fabfb5da"),
}

DEFAULT_MAX_BLOCK_SIZE = 1 * 1024 * 1024


def parse_magic(value: str) -> bytes:
    """Parse a 4-byte magic value written as hex, e.g. ``f9beb4d9`` or ``0xF9BEB4D9``."""
    cleaned = value.strip().lower()
    if cleaned.startswith("0x"):
        cleaned = cleaned[2:]
    magic = bytes.fromhex(cleaned)
    if len(magic) != 4:
        raise ValueError(f"magic must be exactly 4 bytes, got {len(magic)}: {value!r}")
    return magic


class ImporterConfig(BaseSettings):
    """Configuration for the block file importer."""

    # Input Settings
    block_dir: str = Field(default="~/.bitcoin/blocks", description="Directory holding blk*.dat files")
    file_prefix: str = Field(default="blk", description="Only files whose name starts with this are read")
    network: str = Field(default="mainnet", description="Network whose magic bytes frame each block")
    magic: Optional[str] = Field(default=None, description="Comma separated hex magic values, overrides network")
    max_block_size: int = Field(default=DEFAULT_MAX_BLOCK_SIZE, description="Largest accepted frame length in bytes")
    dry_run: bool = Field(default=False, description="Parse and count without writing to the store")

    # Database Settings
    db_url: Optional[str] = Field(default=None, description="Full SQLAlchemy URL, overrides db_* fields")
    db_host: str = Field(default="localhost", description="PostgreSQL host")
    db_port: int = Field(default=5432, description="PostgreSQL port")
    db_name: str = Field(default="bitcoin_blocks", description="Database name")
    db_user: str = Field(default="bitcoin", description="Database username")
    db_password: str = Field(default="", description="Database password")
    db_pool_size: int = Field(default=5, description="Connection pool size")
    db_max_overflow: int = Field(default=10, description="Max pool overflow")
    db_unlogged: bool = Field(default=True, description="Skip the write-ahead log for imported rows")

    # Logging Settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format (json|text)")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_max_size_mb: int = Field(default=100, description="Max log file size in MB")
    log_backup_count: int = Field(default=5, description="Number of log backups")

    class Config:
        env_prefix = "BTC_IMPORT_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @validator('network')
    def validate_network(cls, v):
        if v not in NETWORK_MAGIC:
            raise ValueError(f"unknown network {v!r}, expected one of {sorted(NETWORK_MAGIC)}")
        return v

    @validator('magic')
    def validate_magic(cls, v):
        if v is not None:
            for item in v.split(","):
                parse_magic(item)
        return v

    @validator('max_block_size')
    def validate_max_block_size(cls, v):
        if v <= 0:
            raise ValueError("max_block_size must be positive")
        return v

    @validator('log_format')
    def validate_log_format(cls, v):
        if v.lower() not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v.lower()

    @property
    def magic_values(self) -> Tuple[bytes, ...]:
        """Magic values accepted in front of a frame."""
        if self.magic:
            return tuple(parse_magic(item) for item in self.magic.split(","))
        return (NETWORK_MAGIC[self.network],)

    @property
    def database_url(self) -> str:
        """Generate the store URL."""
        if self.db_url:
            return self.db_url
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"
