from __future__ import annotations

from fastapi import APIRouter, Depends, Path, status

from ..auth import get_current_user
from ..container import get_todo_service
from ..repositories import TodoPatch
from ..schemas import MessageResponse, TodoCreate, TodoEnvelope, TodoListEnvelope, TodoUpdate
from ..security import TokenClaims
from ..todo_service import TodoService

router = APIRouter(
    prefix="/todos",
    tags=["todos"],
    responses={401: {"description": "Missing, invalid or expired bearer token"}},
)

_OWNED = {
    403: {"description": "Todo belongs to another user"},
    404: {"description": "Todo not found"},
}


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item owned by the caller.",
    responses={
        201: {"description": "Todo created successfully"},
        400: {"description": "Validation error"},
    },
)
def create_todo(
    payload: TodoCreate,
    user: TokenClaims = Depends(get_current_user),
    service: TodoService = Depends(get_todo_service),
) -> TodoEnvelope:
    """
    Create a new Todo.
    """
    todo = service.create(user.user_id, payload.title, payload.description)
    return TodoEnvelope(message="Todo created successfully", todo=todo)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=TodoListEnvelope,
    summary="List Todos",
    description="List the caller's todos, newest first.",
)
def list_todos(
    user: TokenClaims = Depends(get_current_user),
    service: TodoService = Depends(get_todo_service),
) -> TodoListEnvelope:
    todos = service.list_by_user(user.user_id)
    return TodoListEnvelope(message="Todos retrieved successfully", todos=todos)


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoEnvelope,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses=_OWNED,
)
def get_todo(
    todo_id: int = Path(..., ge=1, description="Todo id (positive integer)"),
    user: TokenClaims = Depends(get_current_user),
    service: TodoService = Depends(get_todo_service),
) -> TodoEnvelope:
    """
    Retrieve a single Todo item by its ID.
    """
    todo = service.get_by_id(user.user_id, todo_id)
    return TodoEnvelope(message="Todo retrieved successfully", todo=todo)


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}",
    response_model=TodoEnvelope,
    summary="Update Todo",
    description="Update the provided fields of a Todo item; omitted fields are left unchanged.",
    responses={**_OWNED, 400: {"description": "Validation error"}},
)
def update_todo(
    payload: TodoUpdate,
    todo_id: int = Path(..., ge=1, description="Todo id (positive integer)"),
    user: TokenClaims = Depends(get_current_user),
    service: TodoService = Depends(get_todo_service),
) -> TodoEnvelope:
    """
    Partial update of a Todo item.
    """
    todo = service.update(user.user_id, todo_id, TodoPatch.from_update(payload))
    return TodoEnvelope(message="Todo updated successfully", todo=todo)


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    response_model=MessageResponse,
    summary="Delete Todo",
    description="Delete a Todo item by ID.",
    responses=_OWNED,
)
def delete_todo(
    todo_id: int = Path(..., ge=1, description="Todo id (positive integer)"),
    user: TokenClaims = Depends(get_current_user),
    service: TodoService = Depends(get_todo_service),
) -> MessageResponse:
    service.delete(user.user_id, todo_id)
    return MessageResponse(message="Todo deleted successfully")


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}/toggle",
    response_model=TodoEnvelope,
    summary="Toggle Todo",
    description="Flip the completed flag of a Todo item.",
    responses=_OWNED,
)
def toggle_todo(
    todo_id: int = Path(..., ge=1, description="Todo id (positive integer)"),
    user: TokenClaims = Depends(get_current_user),
    service: TodoService = Depends(get_todo_service),
) -> TodoEnvelope:
    todo = service.toggle_completed(user.user_id, todo_id)
    return TodoEnvelope(message="Todo completion status toggled successfully", todo=todo)
