"""Redis-based persistence for folio state."""

import json
from datetime import datetime, timezone
from typing import Optional

import redis
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from folio.config import Secrets, StoreConfig

logger = structlog.get_logger(__name__)

STATE_VERSION = 1

_redis_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    retry=retry_if_exception_type((redis.ConnectionError, redis.TimeoutError)),
    reraise=True,
)


class RedisStateBackend:
    """Redis-backed state persistence for one folio."""

    def __init__(self, folio_id: str, config: StoreConfig, secrets: Secrets):
        """
        Initialize Redis connection.

        Args:
            folio_id: Unique identifier of the folio whose state is stored
            config: Key namespace and TTL settings
            secrets: Redis connection details
        """
        self._folio_id = folio_id
        self._state_key = f"{config.namespace}:state:{folio_id}"
        self._ttl_seconds = config.state_ttl_days * 24 * 60 * 60

        self._client = redis.Redis(
            host=secrets.redis_host,
            port=secrets.redis_port,
            password=secrets.redis_password,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )

        logger.info(
            "redis.backend_initialized",
            folio_id=folio_id,
            host=secrets.redis_host,
            port=secrets.redis_port,
            state_key=self._state_key,
        )

    @property
    def state_key(self) -> str:
        return self._state_key

    def save_state(self, state: dict) -> None:
        """
        Persist folio state to Redis, replacing any previous copy.

        Args:
            state: Output of ``Folio.to_state_dict()``
        """
        envelope = {
            "version": STATE_VERSION,
            "last_saved": datetime.now(timezone.utc).isoformat(),
            "folio": state,
        }

        try:
            self._setex(json.dumps(envelope))
            logger.debug(
                "redis.state_saved",
                folio_id=self._folio_id,
                auctions=len(state.get("auctions", {})),
            )
        except redis.RedisError as e:
            logger.error(
                "redis.save_failed",
                folio_id=self._folio_id,
                error=str(e),
                exc_info=True,
            )
            raise

    def load_state(self) -> Optional[dict]:
        """
        Load folio state from Redis.

        Returns:
            State dict for ``Folio.restore_from_state()`` if found and
            readable, None otherwise
        """
        try:
            raw = self._get()
        except redis.RedisError as e:
            logger.error(
                "redis.load_failed",
                folio_id=self._folio_id,
                error=str(e),
                exc_info=True,
            )
            raise

        if raw is None:
            logger.info("redis.no_state_found", folio_id=self._folio_id, state_key=self._state_key)
            return None

        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("redis.state_parse_failed", folio_id=self._folio_id, error=str(e))
            return None

        if envelope.get("version") != STATE_VERSION:
            logger.warning(
                "redis.state_version_mismatch",
                folio_id=self._folio_id,
                found=envelope.get("version"),
                expected=STATE_VERSION,
            )
            return None

        logger.info(
            "redis.state_loaded",
            folio_id=self._folio_id,
            last_saved=envelope.get("last_saved"),
        )
        return envelope.get("folio")

    def delete_state(self) -> None:
        self._client.delete(self._state_key)
        logger.info("redis.state_deleted", folio_id=self._folio_id)

    def close(self) -> None:
        """Close Redis connection."""
        try:
            self._client.close()
            logger.debug("redis.connection_closed", folio_id=self._folio_id)
        except redis.RedisError as e:
            logger.warning("redis.close_failed", error=str(e))

    @_redis_retry
    def _setex(self, payload: str) -> None:
        self._client.setex(self._state_key, self._ttl_seconds, payload)

    @_redis_retry
    def _get(self) -> Optional[str]:
        return self._client.get(self._state_key)
