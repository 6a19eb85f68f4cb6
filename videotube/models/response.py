"""Response envelope models shared by every endpoint."""

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Success envelope: ``{statusCode, data, message, success}``.

    ``success`` always mirrors ``status_code < 400``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int
    data: Optional[DataT] = None
    message: str = "Success"
    success: bool = True

    @model_validator(mode="after")
    def success_follows_status(self) -> "ApiResponse[DataT]":
        """Derive success from the status code."""
        self.success = self.status_code < 400
        return self


class ErrorResponse(BaseModel):
    """Error envelope: ``{statusCode, message, success: false, errors}``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int
    message: str
    success: bool = False
    errors: List[Any] = []
    data: None = None
