"""Process-wide per-game settings, writable only with an admin capability.

The PIN gate is a single shared secret: a UX deterrent, not a security
boundary. Capabilities are short-lived HS256 tokens tracked by ``jti`` so they
can be revoked.
"""
import hmac
import logging
import time
import uuid
from typing import Dict, Optional

from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from casino_engine.config import settings
from casino_engine.errors import AuthError, Unauthorized, UnknownGame, ValidationError
from casino_engine.models import DEFAULT_GAME_SETTINGS, GameSettings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ADMIN_SCOPE = "admin"

# the admin panel sends camelCase keys
FIELD_ALIASES = {
    "winRate": "win_rate",
    "houseEdge": "house_edge",
    "minBet": "min_bet",
    "maxBet": "max_bet",
    "maxPayout": "max_payout",
}


class SettingsStore:
    def __init__(self, pin: str = None, secret_key: str = None, token_ttl: int = None,
                 defaults: Dict[str, GameSettings] = None):
        self._pin = settings.ADMIN_PIN if pin is None else pin
        self._secret = secret_key or settings.SECRET_KEY
        self._ttl = token_ttl or settings.ADMIN_TOKEN_TTL
        self._defaults = {gid: s.model_copy() for gid, s in (defaults or DEFAULT_GAME_SETTINGS).items()}
        self._settings = {gid: s.model_copy() for gid, s in self._defaults.items()}
        self._active_tokens: Dict[str, int] = {}   # jti -> exp

    def game_ids(self):
        return list(self._settings)

    def _require(self, game_id: str) -> GameSettings:
        current = self._settings.get(game_id)
        if current is None:
            raise UnknownGame(f"Unknown game: {game_id}. Available: {self.game_ids()}")
        return current

    def get(self, game_id: str) -> GameSettings:
        return self._require(game_id).model_copy()

    def all(self) -> Dict[str, GameSettings]:
        return {gid: s.model_copy() for gid, s in self._settings.items()}

    # ─── Admin capability ───────────────────────────────────────────────────

    def authenticate(self, pin: str) -> str:
        if not isinstance(pin, str) or not hmac.compare_digest(pin.encode(), self._pin.encode()):
            logger.warning("admin authentication failed")
            raise AuthError("Invalid admin PIN")
        self._prune()
        jti = uuid.uuid4().hex
        exp = int(time.time()) + self._ttl
        token = jwt.encode(
            {"sub": "admin", "scope": ADMIN_SCOPE, "jti": jti, "exp": exp},
            self._secret, algorithm=ALGORITHM
        )
        self._active_tokens[jti] = exp
        logger.info("admin capability issued")
        return token

    def _prune(self) -> None:
        now = int(time.time())
        for jti in [j for j, exp in self._active_tokens.items() if exp <= now]:
            del self._active_tokens[jti]

    def active_capabilities(self) -> int:
        return len(self._active_tokens)

    def revoke(self, capability: Optional[str] = None) -> None:
        """Drop one capability, or every issued capability when called bare."""
        if capability is None:
            self._active_tokens.clear()
            logger.info("all admin capabilities revoked")
            return
        try:
            claims = jwt.decode(capability, self._secret, algorithms=[ALGORITHM],
                                options={"verify_exp": False})
        except JWTError:
            raise Unauthorized("Malformed admin capability")
        self._active_tokens.pop(claims.get("jti"), None)

    def authorize(self, capability: Optional[str]) -> None:
        self._prune()
        if not capability:
            raise Unauthorized("Admin capability required")
        try:
            claims = jwt.decode(capability, self._secret, algorithms=[ALGORITHM])
        except JWTError:
            raise Unauthorized("Invalid or expired admin capability")
        if claims.get("scope") != ADMIN_SCOPE or claims.get("jti") not in self._active_tokens:
            raise Unauthorized("Admin capability revoked")

    # ─── Mutations ──────────────────────────────────────────────────────────

    def update(self, game_id: str, partial: dict, capability: Optional[str]) -> GameSettings:
        self.authorize(capability)
        current = self._require(game_id)
        if not isinstance(partial, dict):
            raise ValidationError("settings update must be a mapping")
        changes = {FIELD_ALIASES.get(k, k): v for k, v in partial.items()}
        try:
            updated = GameSettings.model_validate({**current.model_dump(), **changes})
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}" for err in e.errors()
            )
            logger.warning("rejected settings update for %s: %s", game_id, problems)
            raise ValidationError(problems)
        self._settings[game_id] = updated
        logger.info("settings for %s updated: %s", game_id, changes)
        return updated.model_copy()

    def reset_to_default(self, game_id: str, capability: Optional[str]) -> GameSettings:
        self.authorize(capability)
        self._require(game_id)
        self._settings[game_id] = self._defaults[game_id].model_copy()
        logger.info("settings for %s reset to defaults", game_id)
        return self.get(game_id)
