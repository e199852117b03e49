"""
외부 협력자(시세 피드) 호출 결과 타입.

[ 역할 ]
    피드 실패를 예외로 전파하지 않고 호출자가 "오래된 데이터" 여부를
    판단할 수 있도록 상태를 명시한다.

    OK          - 새로 받아온 값
    STALE       - 이번 조회는 실패했고, 마지막으로 성공한 값을 대신 반환
    UNAVAILABLE - 조회 실패 + 이전에 성공한 값도 없음
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ResultStatus(Enum):
    OK = "ok"
    STALE = "stale"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class Result(Generic[T]):
    status: ResultStatus
    value: Optional[T] = None
    error: str = ""

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(ResultStatus.OK, value)

    @classmethod
    def stale(cls, value: T, error: str = "") -> "Result[T]":
        return cls(ResultStatus.STALE, value, error)

    @classmethod
    def unavailable(cls, error: str = "") -> "Result[T]":
        return cls(ResultStatus.UNAVAILABLE, None, error)

    @property
    def is_ok(self) -> bool:
        return self.status is ResultStatus.OK

    @property
    def has_value(self) -> bool:
        return self.status is not ResultStatus.UNAVAILABLE
