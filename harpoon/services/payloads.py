import logging
from typing import Any, List, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _mapping(value: Any) -> Any:
    return value if isinstance(value, dict) else {}


class Owner(BaseModel):
    name: Any = None
    email: Any = None


class Repository(BaseModel):
    # display-only fields take whatever GitHub sends; only full_name drives matching
    id: Any = None
    name: Any = None
    full_name: str = ""
    owner: Owner = Field(default_factory=Owner)
    private: Any = None
    html_url: Any = None
    description: Any = None

    @field_validator("full_name", mode="before")
    @classmethod
    def _full_name(cls, value: Any) -> str:
        return _text(value)

    @field_validator("owner", mode="before")
    @classmethod
    def _owner(cls, value: Any) -> Any:
        return _mapping(value)


class HookWithRepository(BaseModel):
    """Any GitHub event that carries a "repository" field."""
    ref: str = ""
    repository: Repository = Field(default_factory=Repository)

    @field_validator("ref", mode="before")
    @classmethod
    def _ref(cls, value: Any) -> str:
        return _text(value)

    @field_validator("repository", mode="before")
    @classmethod
    def _repository(cls, value: Any) -> Any:
        return _mapping(value)


class CommitAuthor(BaseModel):
    name: Any = None
    email: Any = None


class Commit(BaseModel):
    id: Any = None
    timestamp: Any = None
    message: Any = ""
    author: CommitAuthor = Field(default_factory=CommitAuthor)

    @field_validator("author", mode="before")
    @classmethod
    def _author(cls, value: Any) -> Any:
        return _mapping(value)


class HookPush(HookWithRepository):
    commits: List[Commit] = Field(default_factory=list)

    @field_validator("commits", mode="before")
    @classmethod
    def _commits(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [commit for commit in value if isinstance(commit, dict)]


HookT = TypeVar("HookT", bound=HookWithRepository)


def _decode(model: Type[HookT], body: bytes) -> HookT:
    try:
        return model.model_validate_json(body)
    except ValidationError as e:
        # malformed JSON or a non-object body; an empty envelope simply matches nothing
        logger.info(f"[payloads] Could not decode {model.__name__} ({e.error_count()} error(s)) — using empty envelope")
        return model()


def decode_envelope(body: bytes) -> HookWithRepository:
    return _decode(HookWithRepository, body)


def decode_push(body: bytes) -> HookPush:
    return _decode(HookPush, body)
