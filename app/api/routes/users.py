from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from app.core.container import get_lookup_service
from app.core.rate_limit import client_identity, enforce_rate_limit
from app.schemas.users import CreateUserRequest, CreateUserResponse, UserLookupResponse
from app.services.lookup_service import LookupService

router = APIRouter(tags=["Users"])


@router.get("/users/{user_id}", response_model=UserLookupResponse)
async def get_user(
    user_id: str,
    request: Request,
    service: Annotated[LookupService, Depends(get_lookup_service)],
) -> UserLookupResponse:
    """Fetch a user by id, from the cache when possible.

    Concurrent requests for the same id share a single source fetch.
    Admission control runs inside the lookup service, so this route does not
    use the rate limit dependency.

    Returns:
        UserLookupResponse: The user and whether it came from the cache or the
            source.

    Raises:
        RateLimitedAppError: 429 when the client is throttled.
        NotFoundAppError: 404 when the id has no record.
        SourceAppError: 500 when the source fails.
    """
    result = await service.lookup(user_id, identity=client_identity(request))
    return UserLookupResponse(source=result.provenance, user=result.value)


@router.post(
    "/users",
    response_model=CreateUserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_rate_limit)],
)
async def create_user(
    payload: CreateUserRequest,
    service: Annotated[LookupService, Depends(get_lookup_service)],
) -> CreateUserResponse:
    """Create a user and cache it under its new id.

    Raises:
        ValidationAppError: 400 when name or email is missing.
    """
    record = await service.create(payload)
    return CreateUserResponse(user=record)
