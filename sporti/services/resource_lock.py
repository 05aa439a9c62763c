"""
Per-resource mutual exclusion held in the document store.

A lease is a document in `resource_locks` keyed by the resource id. Inserting
it acquires the lock (the unique _id rejects a second holder); deleting it
releases. Leases left behind by a crashed worker are reclaimed once they
expire. Every availability-check-then-write on a resource runs inside
`hold()`, which serializes concurrent confirmations across all workers that
share the database.

A holder that outlives RESOURCE_LOCK_TTL_SECONDS can have its lease taken
over, so writers call `verify()` right before committing and give up with a
409 when the lease is no longer theirs.
"""
import asyncio
import logging
import uuid
from collections import namedtuple
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from pymongo.errors import DuplicateKeyError

from sporti.config.database import Collections
from sporti.config.settings import Settings
from sporti.database.db_operations import DBOperations
from sporti.utils.exceptions import ConflictError

logger = logging.getLogger(__name__)

Lease = namedtuple("Lease", ["resource_id", "token"])


class ResourceLocks:
    def __init__(self, ops: DBOperations, config: Settings):
        self.ops = ops
        self.ttl = timedelta(seconds=config.RESOURCE_LOCK_TTL_SECONDS)
        self.wait_seconds = config.RESOURCE_LOCK_WAIT_SECONDS
        self.poll_seconds = config.RESOURCE_LOCK_POLL_SECONDS

    async def try_acquire(self, resource_id: str, token: str) -> bool:
        collection = self.ops.collection(Collections.RESOURCE_LOCKS)
        now = datetime.utcnow()
        # Reclaim an abandoned lease first
        await collection.delete_one({"_id": str(resource_id), "expires_at": {"$lt": now}})
        try:
            await collection.insert_one({
                "_id": str(resource_id),
                "token": token,
                "acquired_at": now,
                "expires_at": now + self.ttl,
            })
        except DuplicateKeyError:
            return False
        return True

    async def release(self, resource_id: str, token: str) -> None:
        collection = self.ops.collection(Collections.RESOURCE_LOCKS)
        result = await collection.delete_one({"_id": str(resource_id), "token": token})
        if result.deleted_count == 0:
            logger.warning("Lock on resource %s expired before release", resource_id)

    async def verify(self, lease: Lease) -> None:
        """Raise 409 unless `lease` is still held and unexpired"""
        collection = self.ops.collection(Collections.RESOURCE_LOCKS)
        current = await collection.find_one({
            "_id": str(lease.resource_id),
            "token": lease.token,
            "expires_at": {"$gt": datetime.utcnow()},
        })
        if current is None:
            logger.warning("Lost lock on resource %s before commit", lease.resource_id)
            raise ConflictError(
                "Resource lock expired before the booking could be saved, please retry",
                status_code=409,
            )

    @asynccontextmanager
    async def hold(self, resource_id: str):
        token = uuid.uuid4().hex
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_seconds
        while not await self.try_acquire(resource_id, token):
            if loop.time() >= deadline:
                logger.info("Timed out waiting for lock on resource %s", resource_id)
                raise ConflictError(
                    "Resource is being booked by another request, please retry",
                    status_code=409,
                )
            await asyncio.sleep(self.poll_seconds)
        try:
            yield Lease(str(resource_id), token)
        finally:
            await self.release(resource_id, token)
