"""Import every model module so ``Base.metadata`` knows all tables."""

from app.models import (  # noqa: F401
    achievement,
    geothinkr,
    location,
    progress,
    quest,
    user,
)
