"""Cache backends for BankIntegrationCacheProtocol.

RedisIntegrationCache  — one Redis hash (the bucket) with field = record id,
                         value = JSON document. Shared between processes.
MemoryIntegrationCache — per-process dict, same semantics.
NullIntegrationCache   — always misses, discards writes (cache disabled).
"""

import json
from datetime import date
from decimal import Decimal
from typing import Any

import redis.asyncio as aioredis

from config.settings import Settings
from src.bi_integration.domain.cache import BankIntegrationCacheProtocol
from src.bi_integration.domain.models import BankIntegration


def encode_record(record: BankIntegration) -> str:
    """Serialize every field, internal flags included. Balance keeps full precision."""
    return json.dumps(
        {
            "id": record.id,
            "identity_dni": record.identity_dni,
            "account_number": record.account_number,
            "account_type": record.account_type,
            "balance": str(record.balance),
            "date_register": record.date_register.isoformat() if record.date_register else None,
            "scan_available": record.scan_available,
            "prefetch": record.prefetch,
        }
    )


def decode_record(payload: str) -> BankIntegration:
    data: dict[str, Any] = json.loads(payload)
    raw_date = data.get("date_register")
    return BankIntegration(
        id=data.get("id"),
        identity_dni=data["identity_dni"],
        account_number=data["account_number"],
        account_type=data["account_type"],
        balance=Decimal(data["balance"]),
        date_register=date.fromisoformat(raw_date) if raw_date else None,
        scan_available=bool(data.get("scan_available", False)),
        prefetch=int(data.get("prefetch", 0)),
    )


class RedisIntegrationCache:
    def __init__(self, client: aioredis.Redis, bucket: str) -> None:
        self._client = client
        self._bucket = bucket

    async def get(self, integration_id: str) -> BankIntegration | None:
        payload = await self._client.hget(self._bucket, integration_id)
        return decode_record(payload) if payload is not None else None

    async def put(self, integration_id: str, record: BankIntegration) -> None:
        await self._client.hset(self._bucket, integration_id, encode_record(record))

    async def values(self) -> list[BankIntegration]:
        payloads = await self._client.hvals(self._bucket)
        return [decode_record(p) for p in payloads]

    async def delete(self, integration_id: str) -> None:
        await self._client.hdel(self._bucket, integration_id)

    async def clear(self) -> None:
        await self._client.delete(self._bucket)


class MemoryIntegrationCache:
    """Stores encoded copies so callers never share mutable records with the cache."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    async def get(self, integration_id: str) -> BankIntegration | None:
        payload = self._entries.get(integration_id)
        return decode_record(payload) if payload is not None else None

    async def put(self, integration_id: str, record: BankIntegration) -> None:
        self._entries[integration_id] = encode_record(record)

    async def values(self) -> list[BankIntegration]:
        return [decode_record(p) for p in self._entries.values()]

    async def delete(self, integration_id: str) -> None:
        self._entries.pop(integration_id, None)

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class NullIntegrationCache:
    async def get(self, integration_id: str) -> BankIntegration | None:
        return None

    async def put(self, integration_id: str, record: BankIntegration) -> None:
        return None

    async def values(self) -> list[BankIntegration]:
        return []

    async def delete(self, integration_id: str) -> None:
        return None

    async def clear(self) -> None:
        return None


def create_cache(
    settings: Settings, redis_client: aioredis.Redis | None = None
) -> BankIntegrationCacheProtocol:
    if settings.CACHE_BACKEND == "redis":
        if redis_client is None:
            raise ValueError("CACHE_BACKEND=redis requires a Redis client")
        return RedisIntegrationCache(redis_client, settings.CACHE_KEY)
    if settings.CACHE_BACKEND == "memory":
        return MemoryIntegrationCache()
    return NullIntegrationCache()
