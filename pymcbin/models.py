# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Pydantic models for the pymcbin memcached client.

Provides validated configuration for the client and for the per-operation
option sets. Option models ignore keys they do not recognize, so callers
can pass a shared options mapping to any operation.
"""

from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


MAX_UINT32 = 0xFFFFFFFF
MAX_UINT64 = 0xFFFFFFFFFFFFFFFF


# ============================================================================
# Configuration Models
# ============================================================================


class ClientConfig(BaseModel):
    """Configuration for the memcached client and its connection pool."""

    model_config = ConfigDict(validate_assignment=True)

    host: str = "127.0.0.1"
    port: int = Field(default=11211, ge=1, le=65535)

    # Pool settings
    pool_size: int = Field(default=5, ge=1, le=1000)
    pool_max_overflow: int = Field(default=10, ge=0, le=1000)
    checkout_timeout_ms: int | None = Field(default=None, ge=0)

    # Connection settings
    connect_timeout_ms: int = Field(default=10000, ge=100, le=300000)
    request_timeout_ms: int | None = Field(
        default=None,
        ge=1,
        description="Maximum wait for each response frame; None waits forever",
    )

    # Authentication settings
    auth_method: Literal["none", "plain"] = "none"
    username: str = ""
    password: str = ""

    @model_validator(mode="after")
    def check_credentials(self) -> ClientConfig:
        if self.auth_method == "plain" and not self.username:
            raise ValueError("auth_method 'plain' requires a username")
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> ClientConfig:
        """
        Build a configuration from MEMCACHE_* environment variables.

        Explicit keyword overrides win over the environment.
        """
        env = {
            "host": os.environ.get("MEMCACHE_HOST"),
            "port": os.environ.get("MEMCACHE_PORT"),
            "pool_size": os.environ.get("MEMCACHE_POOL_SIZE"),
            "pool_max_overflow": os.environ.get("MEMCACHE_POOL_MAX_OVERFLOW"),
            "auth_method": os.environ.get("MEMCACHE_AUTH_METHOD"),
            "username": os.environ.get("MEMCACHE_USERNAME"),
            "password": os.environ.get("MEMCACHE_PASSWORD"),
        }
        values = {key: value for key, value in env.items() if value is not None}
        values.update(overrides)
        return cls(**values)


# ============================================================================
# Operation Options
# ============================================================================


class StoreOptions(BaseModel):
    """Options for set/add/replace."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    expires: int = Field(default=0, ge=0, le=MAX_UINT32)
    cas: int = Field(default=0, ge=0, le=MAX_UINT64)


class CounterOptions(BaseModel):
    """Options for increment/decrement."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    initial_value: int = Field(default=0, ge=0, le=MAX_UINT64)
    expires: int = Field(default=0, ge=0, le=MAX_UINT32)


class FlushOptions(BaseModel):
    """Options for flush."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    expires: int = Field(default=0, ge=0, le=MAX_UINT32)
