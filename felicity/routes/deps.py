from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from felicity.database.db import get_db
from felicity.models.users import User, UserRole


def get_current_user(x_user_id: int = Header(...), db: Session = Depends(get_db)) -> User:
    """The acting user; sessions are issued upstream and forwarded as X-User-Id."""
    user = db.get(User, x_user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def get_current_organizer(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.ORGANIZER.value:
        raise HTTPException(status_code=403, detail="Organizer access required")
    return user
