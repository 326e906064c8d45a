"""
Ride Service — Result / Error プリミティブ

コマンド層のエラー伝播は例外ではなく Result で行う。
Success(value) か Failure(error) のどちらか一方を返し、
呼び出し側は map / bind で処理を繋げる。

例外を投げるのはプログラミングエラー(依存オブジェクトの欠落など)だけ。

Severity と HTTP ステータスの対応:
    WARNING  → 400 系 (クライアントが修正できる想定内のエラー)
    ERROR    → 500    (内部エラー)
    CRITICAL → 503    (サービス利用不可)
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")
R = TypeVar("R")


class ErrorSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Error:
    """コード・メッセージ・重大度を持つエラー"""
    code: str
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR

    @classmethod
    def validation_failed(cls, message: str) -> "Error":
        return cls("VALIDATION_FAILED", message, ErrorSeverity.WARNING)

    @classmethod
    def not_found(cls, message: str) -> "Error":
        return cls("NOT_FOUND", message, ErrorSeverity.WARNING)

    @classmethod
    def conflict(cls, message: str) -> "Error":
        return cls("CONFLICT", message, ErrorSeverity.WARNING)

    @classmethod
    def unauthorized(cls, message: str) -> "Error":
        return cls("UNAUTHORIZED", message, ErrorSeverity.WARNING)

    @classmethod
    def forbidden(cls, message: str) -> "Error":
        return cls("FORBIDDEN", message, ErrorSeverity.WARNING)

    @classmethod
    def unexpected(cls, message: str) -> "Error":
        return cls("UNEXPECTED", message, ErrorSeverity.ERROR)

    @classmethod
    def critical(cls, message: str) -> "Error":
        return cls("CRITICAL", message, ErrorSeverity.CRITICAL)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass(frozen=True)
class Success(Generic[T]):
    """成功 — 値を保持する"""
    value: T

    @property
    def is_success(self) -> bool:
        return True

    def map(self, f: Callable[[T], U]) -> "Result[U]":
        return Success(f(self.value))

    def bind(self, f: Callable[[T], "Result[U]"]) -> "Result[U]":
        return f(self.value)

    def tap(self, f: Callable[[T], Any]) -> "Result[T]":
        f(self.value)
        return self

    def tap_failure(self, f: Callable[[Error], Any]) -> "Result[T]":
        return self

    def recover(self, f: Callable[[Error], "Result[T]"]) -> "Result[T]":
        return self

    def match(self, success: Callable[[T], R], failure: Callable[[Error], R]) -> R:
        return success(self.value)

    async def match_async(
        self,
        success: Callable[[T], R | Awaitable[R]],
        failure: Callable[[Error], R | Awaitable[R]],
    ) -> R:
        return await _maybe_await(success(self.value))

    def value_or(self, default: T) -> T:
        return self.value

    def error_or_none(self) -> Error | None:
        return None


@dataclass(frozen=True)
class Failure:
    """失敗 — Error を保持する。map / bind はすべて素通りする。"""
    error: Error

    @property
    def is_success(self) -> bool:
        return False

    def map(self, f: Callable[[Any], Any]) -> "Failure":
        return self

    def bind(self, f: Callable[[Any], "Result[Any]"]) -> "Failure":
        return self

    def tap(self, f: Callable[[Any], Any]) -> "Failure":
        return self

    def tap_failure(self, f: Callable[[Error], Any]) -> "Failure":
        f(self.error)
        return self

    def recover(self, f: Callable[[Error], "Result[T]"]) -> "Result[T]":
        return f(self.error)

    def match(self, success: Callable[[Any], R], failure: Callable[[Error], R]) -> R:
        return failure(self.error)

    async def match_async(
        self,
        success: Callable[[Any], R | Awaitable[R]],
        failure: Callable[[Error], R | Awaitable[R]],
    ) -> R:
        return await _maybe_await(failure(self.error))

    def value_or(self, default: T) -> T:
        return default

    def error_or_none(self) -> Error | None:
        return self.error


Result = Union[Success[T], Failure]


# ── ヘルパー ─────────────────────────────────────

def require(condition: bool, error: Error) -> "Result[None]":
    """条件が偽なら Failure を返す。"""
    return Success(None) if condition else Failure(error)


def combine(*results: "Result[Any]") -> "Result[None]":
    """最初の Failure で打ち切る。エラーは蓄積しない。"""
    for result in results:
        if isinstance(result, Failure):
            return result
    return Success(None)


# ── HTTP ステータス対応 ───────────────────────────

_SEVERITY_STATUS = {
    ErrorSeverity.WARNING: 400,
    ErrorSeverity.ERROR: 500,
    ErrorSeverity.CRITICAL: 503,
}

# WARNING の中でもクライアントに意味のあるコードは細分化する
_CODE_STATUS = {
    "NOT_FOUND": 404,
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "CONFLICT": 409,
}


def severity_status(severity: ErrorSeverity) -> int:
    return _SEVERITY_STATUS.get(severity, 500)


def http_status(error: Error) -> int:
    """レスポンス用のステータス。WARNING はエラーコードで 4xx を細分化する。"""
    if error.severity is ErrorSeverity.WARNING:
        return _CODE_STATUS.get(error.code, 400)
    return severity_status(error.severity)
