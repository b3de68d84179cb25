"""
Request payload models and checks.

Each payload is a pydantic model. ``parse_*`` returns the validated model or
raises the ValidationError the API answers with; ``validate_*`` is the pure
form, returning None when the payload is acceptable or the error otherwise.
Child name bounds are configurable and travel in the validation context.
"""
from typing import Any, ClassVar, Dict, Optional, Type, Union

from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationInfo, field_validator
from pydantic import ValidationError as SchemaError

from errors import ValidationError

CHILD_NAME_MIN = 2
GAME_NAME_MIN, GAME_NAME_MAX = 2, 50
DURATION_MIN, DURATION_MAX = 1, 180
EXTENSION_MIN, EXTENSION_MAX = 1, 60

DEFAULT_BOUNDS = {"name_max": 30, "nickname_max": 30, "parent_max": 30}


def _bounds(info: ValidationInfo) -> Dict[str, int]:
    return {**DEFAULT_BOUNDS, **(info.context or {})}


def _minutes(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("booleans are not numbers")
    return value


def _whole(value: float) -> Union[int, float]:
    return int(value) if value.is_integer() else value


class ChildPayload(BaseModel):
    name: StrictStr
    nickname: Optional[StrictStr] = None
    fatherName: Optional[StrictStr] = None
    motherName: Optional[StrictStr] = None

    @staticmethod
    def message(field: str, bounds: Dict[str, int]) -> str:
        if field == "nickname":
            return f"Nickname must be at most {bounds['nickname_max']} characters"
        if field == "fatherName":
            return f"Father's name must be at most {bounds['parent_max']} characters"
        if field == "motherName":
            return f"Mother's name must be at most {bounds['parent_max']} characters"
        return f"Name must be between {CHILD_NAME_MIN} and {bounds['name_max']} characters"

    @field_validator("name")
    @classmethod
    def name_length(cls, v: str, info: ValidationInfo) -> str:
        if not CHILD_NAME_MIN <= len(v.strip()) <= _bounds(info)["name_max"]:
            raise ValueError("name length out of range")
        return v

    @field_validator("nickname")
    @classmethod
    def nickname_length(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        if v is not None and len(v.strip()) > _bounds(info)["nickname_max"]:
            raise ValueError("nickname too long")
        return v

    @field_validator("fatherName", "motherName")
    @classmethod
    def parent_length(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        if v is not None and len(v.strip()) > _bounds(info)["parent_max"]:
            raise ValueError("parent name too long")
        return v


class GamePayload(BaseModel):
    name: StrictStr

    @staticmethod
    def message(field: str, bounds: Dict[str, int]) -> str:
        return f"Name must be between {GAME_NAME_MIN} and {GAME_NAME_MAX} characters"

    @field_validator("name")
    @classmethod
    def name_length(cls, v: str) -> str:
        if not GAME_NAME_MIN <= len(v.strip()) <= GAME_NAME_MAX:
            raise ValueError("name length out of range")
        return v


class SessionStartPayload(BaseModel):
    childId: StrictInt = Field(..., gt=0)
    gameId: StrictInt = Field(..., gt=0)
    # Numeric strings are coerced, fractions allowed
    duration: float = Field(..., ge=DURATION_MIN, le=DURATION_MAX, allow_inf_nan=False)

    missing: ClassVar[str] = "Missing required fields: childId, gameId and duration"

    @staticmethod
    def message(field: str, bounds: Dict[str, int]) -> str:
        if field == "duration":
            return f"Duration must be between {DURATION_MIN} and {DURATION_MAX} minutes"
        return f"{field} must be a positive integer id"

    @field_validator("duration", mode="before")
    @classmethod
    def duration_is_number(cls, v: Any) -> Any:
        return _minutes(v)

    @field_validator("duration")
    @classmethod
    def duration_whole(cls, v: float) -> Union[int, float]:
        return _whole(v)


class SessionExtendPayload(BaseModel):
    sessionId: StrictInt = Field(..., gt=0)
    additionalTime: float = Field(..., ge=EXTENSION_MIN, le=EXTENSION_MAX, allow_inf_nan=False)

    missing: ClassVar[str] = "Missing required fields: sessionId and additionalTime"

    @staticmethod
    def message(field: str, bounds: Dict[str, int]) -> str:
        if field == "additionalTime":
            return f"Additional time must be between {EXTENSION_MIN} and {EXTENSION_MAX} minutes"
        return "sessionId must be a positive integer id"

    @field_validator("additionalTime", mode="before")
    @classmethod
    def additional_is_number(cls, v: Any) -> Any:
        return _minutes(v)

    @field_validator("additionalTime")
    @classmethod
    def additional_whole(cls, v: float) -> Union[int, float]:
        return _whole(v)


class SessionEndPayload(BaseModel):
    sessionId: StrictInt

    @staticmethod
    def message(field: str, bounds: Dict[str, int]) -> str:
        return "sessionId must be an integer id"


def _parse(model: Type[BaseModel], payload: Dict[str, Any], bounds: Optional[Dict[str, int]] = None):
    bounds = {**DEFAULT_BOUNDS, **(bounds or {})}
    try:
        return model.model_validate(payload, context=bounds)
    except SchemaError as exc:
        error = exc.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else ""
        missing = getattr(model, "missing", None)
        if error["type"] == "missing" and missing:
            raise ValidationError(missing) from exc
        raise ValidationError(model.message(field, bounds)) from exc


def parse_child(payload: Dict[str, Any], name_max: int = 30, nickname_max: int = 30,
                parent_max: int = 30) -> ChildPayload:
    bounds = {"name_max": name_max, "nickname_max": nickname_max, "parent_max": parent_max}
    return _parse(ChildPayload, payload, bounds)


def parse_game(payload: Dict[str, Any]) -> GamePayload:
    return _parse(GamePayload, payload)


def parse_session_start(payload: Dict[str, Any]) -> SessionStartPayload:
    return _parse(SessionStartPayload, payload)


def parse_session_extend(payload: Dict[str, Any]) -> SessionExtendPayload:
    return _parse(SessionExtendPayload, payload)


def parse_session_end(payload: Dict[str, Any]) -> SessionEndPayload:
    return _parse(SessionEndPayload, payload)


def _check(parse, *args, **kwargs) -> Optional[ValidationError]:
    try:
        parse(*args, **kwargs)
    except ValidationError as error:
        return error
    return None


def validate_child(payload: Dict[str, Any], name_max: int = 30, nickname_max: int = 30,
                   parent_max: int = 30) -> Optional[ValidationError]:
    return _check(parse_child, payload, name_max=name_max, nickname_max=nickname_max,
                  parent_max=parent_max)


def validate_game(payload: Dict[str, Any]) -> Optional[ValidationError]:
    return _check(parse_game, payload)


def validate_session_start(payload: Dict[str, Any]) -> Optional[ValidationError]:
    return _check(parse_session_start, payload)


def validate_session_extend(payload: Dict[str, Any]) -> Optional[ValidationError]:
    return _check(parse_session_extend, payload)
