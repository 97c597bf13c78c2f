"""
Users API Endpoints.

Intake endpoint for CRM users. Creating a user stores it and publishes a
UserCreated event for the ERP processor.
"""

from fastapi import APIRouter, Response

from crm_erp.core.dependencies import DbSession, EventPublisher, RequestId
from crm_erp.schemas.user import UserCreate, UserResponse
from crm_erp.services.user import UserService

router = APIRouter()


@router.get(
    "",
    response_model=list[UserResponse],
    summary="List users",
    description="Get every stored user.",
)
async def list_users(db: DbSession) -> list[UserResponse]:
    """List users."""
    service = UserService(db)
    users = await service.list_users()
    return [UserResponse.model_validate(user) for user in users]


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get a user",
    description="Get a single user by ID. Unknown IDs return 404 with an empty body.",
    responses={404: {"description": "No user with this ID"}},
)
async def get_user(user_id: str, db: DbSession) -> UserResponse | Response:
    """Get a user by ID."""
    service = UserService(db)
    user = await service.find_user(user_id)
    if user is None:
        return Response(status_code=404)
    return UserResponse.model_validate(user)


@router.post(
    "",
    response_model=UserResponse,
    status_code=201,
    summary="Create a user",
    description="Store a new user and publish its UserCreated event.",
)
async def create_user(
    data: UserCreate,
    db: DbSession,
    request_id: RequestId,
    publisher: EventPublisher,
) -> UserResponse:
    """Create a user."""
    service = UserService(db, publisher=publisher)
    user = await service.create_user(data, correlation_id=request_id)
    return UserResponse.model_validate(user)
