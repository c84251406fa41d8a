import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument
from pymongo.database import Database

from auth import Identity, UserMessage, require_admin, user_summary
from database import get_db, now, to_object_id

logger = logging.getLogger(__name__)

router = APIRouter()


@router.put("/{user_id}/make-admin", response_model=UserMessage)
def make_admin(
    user_id: str,
    admin: Identity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    oid = to_object_id(user_id)
    user = None
    if oid is not None:
        user = db["user"].find_one_and_update(
            {"_id": oid},
            {"$set": {"role": "admin", "updated_at": now()}},
            return_document=ReturnDocument.AFTER,
        )
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    logger.info("User %s promoted to admin by %s", user["email"], admin.id)
    return UserMessage(message="User promoted to admin", user=user_summary(user))
