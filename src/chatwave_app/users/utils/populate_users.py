from typing import Dict, Iterable, Optional
from uuid import UUID
from beanie.operators import In
from chatwave_app.users.models.user_models import UserModel

PUBLIC_FIELDS = {"id", "email", "first_name", "last_name", "image", "bio", "is_online", "last_seen"}


def public_profile(user: Optional[UserModel]) -> Optional[dict]:
    """Subset of a user document that other chat members may see."""
    if user is None:
        return None
    return user.model_dump(include=PUBLIC_FIELDS)


async def fetch_user_map(user_ids: Iterable[UUID]) -> Dict[UUID, UserModel]:
    ids = list({uid for uid in user_ids if uid is not None})
    if not ids:
        return {}
    users = await UserModel.find(In(UserModel.id, ids)).to_list()
    return {user.id: user for user in users}


async def public_profiles(user_ids: Iterable[UUID]) -> list:
    """Profiles in the order of `user_ids`, skipping users that no longer exist."""
    user_ids = list(user_ids)
    users = await fetch_user_map(user_ids)
    return [public_profile(users[uid]) for uid in user_ids if uid in users]
