"""API Routes for expenses"""
from fastapi import APIRouter, HTTPException, Depends, Request, status
from typing import Annotated
from services import expenses_service
from models.expense import (
    DeleteResponse,
    ExpenseCreate,
    ExpenseListResponse,
    ExpenseResponse,
    ExpenseUpdate,
)
from motor.motor_asyncio import AsyncIOMotorCollection
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Expense not found"

# --- Dependency Function ---
def get_expenses_collection(request: Request) -> AsyncIOMotorCollection:
    """Dependency to get the MongoDB expenses collection from the request state."""
    collection = getattr(request.state, "expenses_collection", None)
    if collection is None:
        logger.error("Expenses collection not found in application state. Check MongoDB connection.")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database service not available.")
    return collection

# Type hint for the dependency
ExpensesCollectionDep = Annotated[AsyncIOMotorCollection, Depends(get_expenses_collection)]

def _storage_failure(action: str, error: ConnectionError) -> HTTPException:
    # Storage detail stays in the log
    logger.error(f"Connection error {action}: {error}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"An unexpected server error occurred while {action}."
    )

# --- API Routes ---

@router.get("/expenses", response_model=ExpenseListResponse, summary="Get All Expenses", description="Retrieves all expense records. Ordering is not guaranteed.")
async def list_expenses(collection: ExpensesCollectionDep) -> ExpenseListResponse:
    logger.info("GET /expenses endpoint called.")
    try:
        expenses = await expenses_service.get_all_expenses_from_db(collection)
    except ConnectionError as ce:
        raise _storage_failure("fetching expenses", ce)
    return ExpenseListResponse(count=len(expenses), data=expenses)

@router.get("/expenses/{expense_id}", response_model=ExpenseResponse, summary="Get Expense")
async def get_expense(expense_id: str, collection: ExpensesCollectionDep) -> ExpenseResponse:
    logger.info(f"GET /expenses/{expense_id} endpoint called.")
    try:
        expense = await expenses_service.get_expense_by_id(collection, expense_id)
    except ConnectionError as ce:
        raise _storage_failure("fetching the expense", ce)
    if expense is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE)
    return ExpenseResponse(data=expense)

@router.post(
    "/expenses",
    response_model=ExpenseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Expense",
    description="Validates and stores a new expense. The id is assigned by the database."
)
async def create_expense(expense_in: ExpenseCreate, collection: ExpensesCollectionDep) -> ExpenseResponse:
    logger.info(f"POST /expenses endpoint called: '{expense_in.title}' ({expense_in.category}).")
    try:
        expense = await expenses_service.create_expense(collection, expense_in)
    except ConnectionError as ce:
        raise _storage_failure("creating the expense", ce)
    return ExpenseResponse(data=expense)

@router.put("/expenses/{expense_id}", response_model=ExpenseResponse, summary="Update Expense", description="Replaces the fields present in the body; other fields are kept.")
async def update_expense(expense_id: str, update_in: ExpenseUpdate, collection: ExpensesCollectionDep) -> ExpenseResponse:
    logger.info(f"PUT /expenses/{expense_id} endpoint called with fields {sorted(update_in.model_fields_set)}.")
    try:
        expense = await expenses_service.update_expense(collection, expense_id, update_in)
    except ConnectionError as ce:
        raise _storage_failure("updating the expense", ce)
    if expense is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE)
    return ExpenseResponse(data=expense)

@router.delete("/expenses/{expense_id}", response_model=DeleteResponse, summary="Delete Expense")
async def delete_expense(expense_id: str, collection: ExpensesCollectionDep) -> DeleteResponse:
    logger.info(f"DELETE /expenses/{expense_id} endpoint called.")
    try:
        deleted = await expenses_service.delete_expense(collection, expense_id)
    except ConnectionError as ce:
        raise _storage_failure("deleting the expense", ce)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE)
    return DeleteResponse()
