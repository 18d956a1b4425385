"""Points accumulator: the only code path that changes ``users.points``."""
import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NegativeBalance, UserNotFound
from app.models.user import User

logger = logging.getLogger(__name__)

users_table = User.__table__


async def increment_points(db: AsyncSession, user_id: int, amount: int) -> int:
    """
    Add ``amount`` to the user's balance in a single UPDATE ... RETURNING.

    Runs inside the caller's transaction; the caller commits. Returns the new
    balance. A balance that would drop below zero trips the
    ``ck_users_points_non_negative`` constraint.
    """
    stmt = (
        update(users_table)
        .where(users_table.c.id == user_id)
        .values(points=users_table.c.points + amount)
        .returning(users_table.c.points)
    )
    try:
        result = await db.execute(stmt)
    except IntegrityError as exc:
        logger.info("Rejected %+d points for user %s: balance would go negative", amount, user_id)
        raise NegativeBalance() from exc

    new_balance = result.scalar_one_or_none()
    if new_balance is None:
        raise UserNotFound()
    return new_balance
