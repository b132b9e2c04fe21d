"""
Scoped State — Typed, per-turn cached access to persisted state.

Each BotState subclass maps a turn to one storage key (its scope):

  ConversationState → "{channel}/conversations/{conversation_id}"
  UserState         → "{channel}/users/{user_id}"

Within a turn, the first access loads the whole scope into the turn's cache.
Accessors read and mutate the cached objects; nothing reaches storage until
`save_changes(turn)`, which serializes the scope once and writes it only if
it changed since it was loaded. The dispatcher calls it exactly once per
turn, after all mutation is done.

Usage:
    conversation_state = ConversationState(storage)
    dialog_state = conversation_state.create_property("DialogState", DialogState)

    state = await dialog_state.get(turn, DialogState)
    state.stack.append(frame)
    await conversation_state.save_changes(turn)
"""
from __future__ import annotations

import abc
import json
import structlog
from typing import Any, Callable, Optional

from pydantic import BaseModel

from channels.base import TurnContext
from database.store_base import BaseStorage

logger = structlog.get_logger()


def _serialize(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


class CachedBotState:
    """One scope's state as loaded for the current turn."""

    def __init__(self, state: dict[str, Any] = None, version: int = 0):
        self.state = state or {}
        self.version = version
        self.hash = self.compute_hash(self.state)

    @staticmethod
    def compute_hash(state: dict[str, Any]) -> str:
        return json.dumps(_serialize(state), sort_keys=True, default=str)

    def is_changed(self) -> bool:
        return self.compute_hash(self.state) != self.hash


class BotState(abc.ABC):
    """Base class for a persisted state scope."""

    def __init__(self, storage: BaseStorage, name: str):
        if storage is None:
            raise ValueError(f"{type(self).__name__} requires a storage backend")
        self._storage = storage
        self._name = name
        self._cache_key = f"bot_state:{name}"

    @property
    def name(self) -> str:
        return self._name

    @abc.abstractmethod
    def get_storage_key(self, turn: TurnContext) -> str:
        ...

    def create_property(self, type_tag: str, model: type[BaseModel] = None) -> StatePropertyAccessor:
        return StatePropertyAccessor(self, type_tag, model)

    # ── Load / Save ───────────────────────────────────────────

    async def load(self, turn: TurnContext) -> CachedBotState:
        cached = turn.turn_state.get(self._cache_key)
        if cached is None:
            item = await self._storage.read(self.get_storage_key(turn))
            cached = CachedBotState(item.data if item else {}, item.version if item else 0)
            turn.turn_state[self._cache_key] = cached
        return cached

    async def save_changes(self, turn: TurnContext) -> bool:
        """Write the scope if it changed this turn. Returns True when a write happened."""
        cached = turn.turn_state.get(self._cache_key)
        if cached is None or not cached.is_changed():
            return False

        key = self.get_storage_key(turn)
        cached.version = await self._storage.write(key, _serialize(cached.state))
        cached.hash = cached.compute_hash(cached.state)
        logger.debug("state_saved", scope=self._name, key=key, version=cached.version)
        return True

    # ── Typed get/set ─────────────────────────────────────────

    async def get(self, turn: TurnContext, type_tag: str, default: Any = None) -> Any:
        cached = await self.load(turn)
        return cached.state.get(type_tag, default)

    async def set(self, turn: TurnContext, type_tag: str, value: Any) -> None:
        cached = await self.load(turn)
        cached.state[type_tag] = value

    async def delete(self, turn: TurnContext, type_tag: str) -> None:
        cached = await self.load(turn)
        cached.state.pop(type_tag, None)


class ConversationState(BotState):
    """State shared by everyone in one conversation (the dialog stack lives here)."""

    def __init__(self, storage: BaseStorage):
        super().__init__(storage, "ConversationState")

    def get_storage_key(self, turn: TurnContext) -> str:
        activity = turn.activity
        if not activity.conversation.id:
            raise ValueError("ConversationState requires activity.conversation.id")
        return f"{activity.channel_id}/conversations/{activity.conversation.id}"


class UserState(BotState):
    """State that follows one user across conversations on a channel."""

    def __init__(self, storage: BaseStorage):
        super().__init__(storage, "UserState")

    def get_storage_key(self, turn: TurnContext) -> str:
        activity = turn.activity
        if not activity.sender.id:
            raise ValueError("UserState requires activity.sender.id")
        return f"{activity.channel_id}/users/{activity.sender.id}"


class StatePropertyAccessor:
    """Typed handle on one property inside a scope."""

    def __init__(self, state: BotState, name: str, model: type[BaseModel] = None):
        self._state = state
        self.name = name
        self._model = model

    async def get(self, turn: TurnContext, default_factory: Callable[[], Any] = None) -> Optional[Any]:
        value = await self._state.get(turn, self.name)
        if value is None:
            if default_factory is None:
                return None
            value = default_factory()
            await self._state.set(turn, self.name, value)
            return value

        if self._model is not None and isinstance(value, dict):
            # Cache the model instance so in-place mutations are saved
            value = self._model.model_validate(value)
            await self._state.set(turn, self.name, value)
        return value

    async def set(self, turn: TurnContext, value: Any) -> None:
        await self._state.set(turn, self.name, value)

    async def delete(self, turn: TurnContext) -> None:
        await self._state.delete(turn, self.name)
