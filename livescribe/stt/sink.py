"""
전사 텍스트 출력 모듈입니다.

텍스트 조각을 구분자 없이 이어 쓰고 매번 flush합니다.
진단 메시지는 로거(stderr)로 나가므로 stdout에는 전사 텍스트만 남습니다.
"""

from __future__ import annotations

import sys
from typing import Callable, Optional, TextIO

from livescribe.stt import TranscriptIncrement

# 출력 콜백 타입
TextSink = Callable[[TranscriptIncrement], None]


class StdoutSink:
    """텍스트 조각을 스트림(기본 stdout)에 개행 없이 이어 씁니다."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    def __call__(self, increment: TranscriptIncrement) -> None:
        # sys.stdout은 호출 시점에 조회 (테스트 캡처 대응)
        stream = self._stream or sys.stdout
        stream.write(increment.text)
        stream.flush()


class CollectingSink:
    """텍스트 조각을 메모리에 모읍니다."""

    def __init__(self) -> None:
        self.increments: list[TranscriptIncrement] = []

    def __call__(self, increment: TranscriptIncrement) -> None:
        self.increments.append(increment)

    @property
    def text(self) -> str:
        return "".join(increment.text for increment in self.increments)
