from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import sessionmaker

from . import config
from .messaging.bus import LogOnlyProducer


@dataclass
class SessionContext:
    """
    Everything the core components share for one user session: who the user
    is, where data lives, where events go and what time it is.
    """
    db: sessionmaker
    user_id: str = config.DEFAULT_USER_ID
    producer: object = field(default_factory=LogOnlyProducer)
    clock: Callable[[], datetime] = datetime.now
