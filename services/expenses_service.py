"""Service layer for handling expense-related logic."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection # Type hint for collection
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError
from models.expense import Expense, ExpenseCreate, ExpenseUpdate

logger = logging.getLogger(__name__)

# --- Document Helpers ---

def _to_object_id(expense_id: str) -> Optional[ObjectId]:
    """Returns the ObjectId for a path id, or None when it cannot be one (treated as not found)."""
    if not ObjectId.is_valid(expense_id):
        return None
    return ObjectId(expense_id)

def _document_to_expense(doc: Dict[str, Any]) -> Expense:
    """Converts a raw MongoDB document into the API model."""
    doc = dict(doc)
    if '_id' in doc: doc['id'] = str(doc.pop('_id'))
    if doc.get('notes') is None:
        doc['notes'] = ""
    for field in ('date', 'created_at', 'updated_at'):
        value = doc.get(field)
        if isinstance(value, datetime) and value.tzinfo is None:
            doc[field] = value.replace(tzinfo=timezone.utc)
    return Expense(**doc)

# --- Database Interaction Functions (Depend on collection passed from route) ---

async def get_all_expenses_from_db(collection: AsyncIOMotorCollection) -> List[Expense]:
    """Fetches every expense in the collection. Ordering is left to the client."""
    logger.info(f"Fetching all expenses from collection '{collection.name}'...")
    expenses = []
    try:
        async for doc in collection.find({}):
            try:
                expenses.append(_document_to_expense(doc))
            except ValidationError as e:
                logger.error(f"Data validation error for document ID {doc.get('_id', 'N/A')}: {e}")
                # Skip invalid documents
                continue
    except PyMongoError as e:
        logger.error(f"Database error fetching expenses: {e}")
        raise ConnectionError(f"Database error fetching expenses: {e}")
    logger.info(f"Fetched {len(expenses)} expenses successfully.")
    return expenses

async def get_expense_by_id(collection: AsyncIOMotorCollection, expense_id: str) -> Optional[Expense]:
    """Returns the expense with the given id, or None if there is none."""
    object_id = _to_object_id(expense_id)
    if object_id is None:
        logger.info(f"Expense id '{expense_id}' is not a valid ObjectId.")
        return None
    try:
        document = await collection.find_one({"_id": object_id})
    except PyMongoError as e:
        logger.error(f"Database error fetching expense {expense_id}: {e}")
        raise ConnectionError(f"Database error fetching expense: {e}")
    if document is None:
        return None
    return _document_to_expense(document)

async def create_expense(collection: AsyncIOMotorCollection, expense_in: ExpenseCreate) -> Expense:
    """Inserts a validated expense and returns it with the id assigned by the store."""
    document = expense_in.model_dump()
    now = datetime.now(timezone.utc)
    document['created_at'] = now
    document['updated_at'] = now
    try:
        result = await collection.insert_one(document)
    except PyMongoError as e:
        logger.error(f"Database error inserting expense: {e}")
        raise ConnectionError(f"Database error inserting expense: {e}")
    document['_id'] = result.inserted_id
    logger.info(f"Created expense {result.inserted_id} ('{expense_in.title}', {expense_in.amount}).")
    return _document_to_expense(document)

async def update_expense(
    collection: AsyncIOMotorCollection,
    expense_id: str,
    update_in: ExpenseUpdate
) -> Optional[Expense]:
    """
    Applies the fields present in ``update_in`` to an existing expense.
    Untouched fields are preserved. Returns None if the expense does not exist.
    Last write wins; there is no concurrency token.
    """
    changes = update_in.model_dump(exclude_unset=True)
    if not changes:
        logger.info(f"Empty update for expense {expense_id}; returning current record.")
        return await get_expense_by_id(collection, expense_id)

    object_id = _to_object_id(expense_id)
    if object_id is None:
        return None

    changes['updated_at'] = datetime.now(timezone.utc)
    try:
        document = await collection.find_one_and_update(
            {"_id": object_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
    except PyMongoError as e:
        logger.error(f"Database error updating expense {expense_id}: {e}")
        raise ConnectionError(f"Database error updating expense: {e}")
    if document is None:
        return None
    logger.info(f"Updated expense {expense_id}: fields {sorted(k for k in changes if k != 'updated_at')}")
    return _document_to_expense(document)

async def delete_expense(collection: AsyncIOMotorCollection, expense_id: str) -> bool:
    """Deletes an expense. Returns False if it did not exist."""
    object_id = _to_object_id(expense_id)
    if object_id is None:
        return False
    try:
        result = await collection.delete_one({"_id": object_id})
    except PyMongoError as e:
        logger.error(f"Database error deleting expense {expense_id}: {e}")
        raise ConnectionError(f"Database error deleting expense: {e}")
    if result.deleted_count == 0:
        return False
    logger.info(f"Deleted expense {expense_id}.")
    return True
