from typing import Type, TypeVar

import orjson
from pydantic import BaseModel, ConfigDict

M = TypeVar("M", bound="WireModel")


class CoreModel(BaseModel):
    """
    Base for models parsed from user input. Unknown fields are rejected so that
    typos in the applications file surface as errors instead of being ignored.
    """

    model_config = ConfigDict(extra="forbid")


# Models should be immutable so that they can be stored in the state, shared between
# states and used as set members without copying.
class ImmutableModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class WireModel(BaseModel):
    """
    Base for messages exchanged with the proxy. Unknown fields are ignored so that
    newer proxies can extend their answers.
    """

    model_config = ConfigDict(extra="ignore")

    def to_bytes(self) -> bytes:
        return orjson.dumps(self.model_dump(mode="json", exclude_none=True))

    @classmethod
    def from_bytes(cls: Type[M], data: bytes) -> M:
        return cls.model_validate(orjson.loads(data))
