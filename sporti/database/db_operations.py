"""
Database operations - Generic CRUD functions for all collections
"""
from contextlib import asynccontextmanager
from typing import List, Dict, Optional, Any, Tuple
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from sporti.config.database import DatabaseConfig, db_config
from datetime import datetime


def to_object_id(doc_id: Any) -> Optional[ObjectId]:
    """Parse a string id, returning None when it is not a valid ObjectId"""
    if isinstance(doc_id, ObjectId):
        return doc_id
    try:
        return ObjectId(str(doc_id))
    except (InvalidId, TypeError):
        return None


class DBOperations:
    """Generic database operations for MongoDB collections"""

    def __init__(self, config: DatabaseConfig):
        self.config = config

    def collection(self, collection_name: str):
        return self.config.get_collection(collection_name)

    async def get_all(
        self,
        collection_name: str,
        filter_query: Dict = None,
        skip: int = 0,
        limit: Optional[int] = 100,
        sort: Optional[List[Tuple[str, int]]] = None,
        session=None,
    ) -> List[Dict]:
        """Get all documents from a collection with optional filtering; `limit=None` reads them all"""
        collection = self.collection(collection_name)
        filter_query = filter_query or {}
        cursor = collection.find(filter_query, sort=sort, skip=skip, limit=limit or 0, session=session)
        documents = await cursor.to_list(length=limit)
        return documents

    async def distinct(self, collection_name: str, key: str, filter_query: Dict = None) -> List[Any]:
        """Distinct values of `key` across matching documents"""
        collection = self.collection(collection_name)
        return await collection.distinct(key, filter_query or {})

    async def get_by_id(self, collection_name: str, doc_id: str, session=None) -> Optional[Dict]:
        """Get a single document by ID"""
        object_id = to_object_id(doc_id)
        if object_id is None:
            return None
        collection = self.collection(collection_name)
        return await collection.find_one({"_id": object_id}, session=session)

    async def get_one(self, collection_name: str, filter_query: Dict, sort=None, session=None) -> Optional[Dict]:
        """Get a single document by filter query"""
        collection = self.collection(collection_name)
        if sort:
            return await collection.find_one(filter_query, sort=sort, session=session)
        return await collection.find_one(filter_query, session=session)

    async def create(self, collection_name: str, document: Dict, session=None) -> Dict:
        """Create a new document"""
        collection = self.collection(collection_name)
        now = datetime.utcnow()
        document["created_at"] = now
        document["updated_at"] = now
        result = await collection.insert_one(document, session=session)
        document["_id"] = result.inserted_id
        return document

    async def update(
        self,
        collection_name: str,
        doc_id: str,
        update_data: Dict,
        guard: Optional[Dict] = None,
        session=None,
    ) -> Optional[Dict]:
        """Update a document by ID; `guard` adds conditions the document must still meet"""
        object_id = to_object_id(doc_id)
        if object_id is None:
            return None
        collection = self.collection(collection_name)
        update_data["updated_at"] = datetime.utcnow()
        query = {"_id": object_id}
        if guard:
            query.update(guard)
        return await collection.find_one_and_update(
            query,
            {"$set": update_data},
            return_document=ReturnDocument.AFTER,
            session=session,
        )

    async def delete(self, collection_name: str, doc_id: str) -> bool:
        """Delete a document by ID"""
        object_id = to_object_id(doc_id)
        if object_id is None:
            return False
        collection = self.collection(collection_name)
        result = await collection.delete_one({"_id": object_id})
        return result.deleted_count > 0

    async def count(self, collection_name: str, filter_query: Dict = None) -> int:
        """Count documents in a collection"""
        collection = self.collection(collection_name)
        filter_query = filter_query or {}
        return await collection.count_documents(filter_query)

    async def aggregate(self, collection_name: str, pipeline: List[Dict]) -> List[Dict]:
        """Execute aggregation pipeline"""
        collection = self.collection(collection_name)
        cursor = collection.aggregate(pipeline)
        return await cursor.to_list(length=None)

    @asynccontextmanager
    async def transaction(self):
        """Yield a session inside a transaction, or None when transactions are off"""
        if not self.config.TRANSACTIONS:
            yield None
            return
        async with await self.config.client.start_session() as session:
            async with session.start_transaction():
                yield session


db_ops = DBOperations(db_config)
