from __future__ import annotations
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    storage_dir: str = Field(default="./storage", alias="CHAINTRACK_STORAGE_DIR")

    # Polygon Amoy testnet deployment of the supply-chain contract
    rpc_url: Optional[str] = Field(
        default="https://rpc-amoy.polygon.technology/", alias="CHAINTRACK_RPC_URL"
    )
    contract_address: str = Field(
        default="0x444607c3F4788e8cB1f8B29132c6Ea6F4cac01bc",
        alias="CHAINTRACK_CONTRACT_ADDRESS",
    )
    chain_id: int = Field(default=80002, alias="CHAINTRACK_CHAIN_ID")
    explorer_url: str = Field(
        default="https://amoy.polygonscan.com", alias="CHAINTRACK_EXPLORER_URL"
    )
    rpc_timeout_seconds: float = Field(default=10.0, alias="CHAINTRACK_RPC_TIMEOUT_SECONDS")

    # Use on-chain checks in the verify endpoint; off means local-only verification
    onchain_verify: bool = Field(default=True, alias="CHAINTRACK_ONCHAIN_VERIFY")

    # Global request size limit enforced by middleware (bytes)
    max_request_bytes: int = Field(default=262144, alias="CHAINTRACK_MAX_REQUEST_BYTES")
    max_batch_items: int = Field(default=10000, alias="CHAINTRACK_MAX_BATCH_ITEMS")

    log_level: str = Field(default="INFO", alias="CHAINTRACK_LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


def get_settings() -> Settings:
    """Fresh settings read from the current environment."""
    return Settings()


settings = Settings()  # load at import
