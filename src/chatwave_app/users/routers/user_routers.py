import re
from fastapi import APIRouter, HTTPException, status, Depends, Query
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.users.schemas.user_schemas import UserPublic, UserListResponse
from chatwave_app.users.utils.get_current_user import get_current_user, parse_uuid


user_router = APIRouter(prefix="/user", tags=["Users"])


@user_router.get("/fetch-all-users", response_model=UserListResponse, status_code=status.HTTP_200_OK)
async def fetch_all_users(
    search: str = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: UserModel = Depends(get_current_user),
):
    """
    List users, optionally filtered by name or email.

    - **search**: case-insensitive match on first name, last name or email
    - **page** / **limit**: 1-based pagination
    """
    query = {}
    if search:
        pattern = re.escape(search)
        query = {
            "$or": [
                {"first_name": {"$regex": pattern, "$options": "i"}},
                {"last_name": {"$regex": pattern, "$options": "i"}},
                {"email": {"$regex": pattern, "$options": "i"}},
            ]
        }

    users = await UserModel.find(query).sort("-created_at").skip((page - 1) * limit).limit(limit).to_list()
    total_users = await UserModel.find(query).count()
    return {"users": users, "total_users": total_users}


@user_router.get("/profile/{user_id}", response_model=UserPublic, status_code=status.HTTP_200_OK)
async def get_user_profile(user_id: str, current_user: UserModel = Depends(get_current_user)):
    user = await UserModel.get(parse_uuid(user_id, "Invalid user ID"))
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
