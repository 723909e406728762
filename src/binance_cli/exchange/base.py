from __future__ import annotations

from dataclasses import dataclass
from typing import Any

AUTH_ERROR_CODES = {-2014, -2015, -1022, -1002}


@dataclass(frozen=True)
class RawOrderResponse:
    status_code: int
    body: str
    query: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class ExchangeError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        retriable: bool = False,
        status_code: int | None = None,
        error_code: int | None = None,
        body: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.retriable = retriable
        self.status_code = status_code
        self.error_code = error_code
        self.body = body
        self.details = details or {}

    @property
    def is_auth_error(self) -> bool:
        return self.error_code in AUTH_ERROR_CODES


class ExchangeRejectedError(ExchangeError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        error_code: int | None = None,
        body: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            retriable=status_code in {408, 418, 429} or status_code >= 500,
            status_code=status_code,
            error_code=error_code,
            body=body,
            details=details,
        )


class TransportError(ExchangeError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            retriable=True,
            status_code=status_code,
            body=body,
            details=details,
        )
