"""
Log sink append-only das transições de estado de Steps.

Formato de linha (v1):

    "{timestamp} {step_name} {status} {message}"

- timestamp: ISO 8601 em UTC
- status: valor canônico de `StepStatus` (running, succeeded, failed, skipped)

Decisões arquiteturais:
    - O sink é injetável: arquivo, stream ou coletor em memória
    - A única garantia de concorrência é a atomicidade do append (lock por sink)
    - A ordem das linhas reflete a ordem de chamada de `append`

Limites explícitos:
    - Não filtra por nível
    - Não rotaciona arquivos
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, List, Protocol, Union, runtime_checkable


@dataclass(frozen=True)
class LogRecord:
    timestamp: datetime
    step_name: str
    status: str
    message: str

    def to_line(self) -> str:
        ts = self.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        message = " ".join(self.message.splitlines())
        return f"{ts.astimezone(timezone.utc).isoformat()} {self.step_name} {self.status} {message}"


@runtime_checkable
class LogSink(Protocol):
    def append(self, record: LogRecord) -> None:
        ...


class MemoryLogSink:
    """Coletor em memória (testes e inspeção programática)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.records: List[LogRecord] = []

    def append(self, record: LogRecord) -> None:
        with self._lock:
            self.records.append(record)

    @property
    def lines(self) -> List[str]:
        with self._lock:
            return [r.to_line() for r in self.records]


class StreamLogSink:
    def __init__(self, stream: IO[str]) -> None:
        self._lock = threading.Lock()
        self._stream = stream

    def append(self, record: LogRecord) -> None:
        line = record.to_line() + "\n"
        with self._lock:
            self._stream.write(line)
            self._stream.flush()


class FileLogSink:
    """Arquivo em modo append; cada linha é escrita e liberada sob lock."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._lock = threading.Lock()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: LogRecord) -> None:
        line = record.to_line() + "\n"
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line)
