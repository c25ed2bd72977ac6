"""
User Store

External collaborator owning user records and balances. The engine reads
balances for affordability checks and asks for a save after it records a
bid, registration or win.
"""
import threading
from typing import Dict, List, Optional, Protocol

import redis

from auction_engine.infrastructure.retry import RetryConfig, call_with_retry
from auction_engine.models import User

USERS_KEY = "users"


class UserStore(Protocol):
    def get_user(self, username: str) -> Optional[User]: ...

    def save_user(self, user: User) -> None: ...


class InMemoryUserStore:
    """
    Process-local user store

    ``get_user`` hands out copies; changes become visible only through
    ``save_user``, like a real backing store.
    """

    def __init__(self, users: Optional[List[User]] = None):
        self._users: Dict[str, User] = {}
        self._lock = threading.Lock()
        for user in users or []:
            self.save_user(user)

    def get_user(self, username: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(username)
            return user.model_copy(deep=True) if user else None

    def save_user(self, user: User) -> None:
        with self._lock:
            self._users[user.username] = user.model_copy(deep=True)

    def list_users(self) -> List[User]:
        with self._lock:
            return [user.model_copy(deep=True) for user in self._users.values()]


class RedisUserStore:
    """
    Users as JSON documents in one Redis hash

    Key: {prefix}:users  field: username  value: user JSON
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        key_prefix: str = "timed-auction",
        retry_config: Optional[RetryConfig] = None,
    ):
        self.redis = redis_client
        self.key = f"{key_prefix}:{USERS_KEY}"
        self.retry_config = retry_config or RetryConfig()

    def get_user(self, username: str) -> Optional[User]:
        raw = call_with_retry(
            "load user",
            self.redis.hget,
            self.key,
            username,
            config=self.retry_config,
            retry_on=(redis.RedisError,),
        )
        if not raw:
            return None
        return User.model_validate_json(raw)

    def save_user(self, user: User) -> None:
        call_with_retry(
            "save user",
            self.redis.hset,
            self.key,
            user.username,
            user.model_dump_json(),
            config=self.retry_config,
            retry_on=(redis.RedisError,),
        )

    def list_users(self) -> List[User]:
        raw_users = call_with_retry(
            "list users",
            self.redis.hvals,
            self.key,
            config=self.retry_config,
            retry_on=(redis.RedisError,),
        )
        return [User.model_validate_json(raw) for raw in raw_users]
