import logging
from fastapi import APIRouter, HTTPException, Depends, Response, status
from pymongo.errors import DuplicateKeyError
from chatwave_app.core.base.base import utc_now
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.users.schemas.user_schemas import AuthResponse, UserCreate, UserLogin, ProfileUpdateRequest
from chatwave_app.users.utils.password import hash_password, verify_password, password_needs_rehash
from chatwave_app.users.utils.token_generate import create_access_token, set_auth_cookie, clear_auth_cookie
from chatwave_app.users.utils.get_current_user import get_current_user
from chatwave_app.notifications.utils import send_notification
from chatwave_app.notifications.models import NotificationType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _issue_session(response: Response, user: UserModel):
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    set_auth_cookie(response, token)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserCreate, response: Response):
    if not data.email or not data.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email and password are required")

    if await UserModel.find_one(UserModel.email == data.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists")

    new_user = UserModel(email=data.email, password=hash_password(data.password))
    try:
        await new_user.insert()
    except DuplicateKeyError:
        # lost a race against a concurrent registration
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists")

    _issue_session(response, new_user)
    logger.info(f"Registered user {new_user.id}")

    await send_notification(
        user=new_user,
        title="Welcome!",
        body="Your account is ready. Complete your profile so people can find you.",
        type=NotificationType.ACCOUNT,
    )

    return {"user": new_user}


@router.post("/login", response_model=AuthResponse, status_code=status.HTTP_200_OK)
async def login(data: UserLogin, response: Response):
    if not data.email or not data.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email and password are required")

    db_user = await UserModel.find_one(UserModel.email == data.email)
    if not db_user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if not verify_password(data.password, db_user.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    if password_needs_rehash(db_user.password):
        db_user.password = hash_password(data.password)
        await UserModel.find_one(UserModel.id == db_user.id).update({"$set": {"password": db_user.password}})

    _issue_session(response, db_user)
    return {"user": db_user}


@router.post("/logout", status_code=status.HTTP_200_OK)
async def logout(response: Response):
    clear_auth_cookie(response)
    return {"message": "Logged out successfully"}


@router.get("/user-info", response_model=AuthResponse, status_code=status.HTTP_200_OK)
async def get_user_info(current_user: UserModel = Depends(get_current_user)):
    return {"user": current_user}


@router.put("/update-profile", response_model=AuthResponse, status_code=status.HTTP_200_OK)
async def update_profile(data: ProfileUpdateRequest, current_user: UserModel = Depends(get_current_user)):
    update_dict = data.model_dump(exclude_unset=True)

    if not update_dict:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one field is required for update")

    first_name = update_dict.get("first_name", current_user.first_name)
    last_name = update_dict.get("last_name", current_user.last_name)
    if first_name and last_name:
        update_dict["profile_setup"] = True
    update_dict["updated_at"] = utc_now()

    # only the profile fields; presence flags are owned by the socket layer
    await UserModel.find_one(UserModel.id == current_user.id).update({"$set": update_dict})
    await current_user.fetch()
    return {"user": current_user}
