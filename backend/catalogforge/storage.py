"""
本地字节存储 - IByteStore 的文件系统实现

key 为存储根目录下的相对 POSIX 路径（如 jobs/<job_id>/catalog.pdf）。
越出根目录的 key 与所有 OS 错误都包装为 PersistenceError。
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator

from .interfaces import IByteStore, PersistenceError


class LocalByteStore(IByteStore):
    """本地文件系统字节存储"""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def resolve(self, key: str) -> Path:
        """key → 绝对路径"""
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            raise PersistenceError(f"存储key越界: {key}")
        return path

    def write(self, key: str, data: bytes) -> str:
        path = self.resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise PersistenceError(f"写入失败: {key}: {e}") from e
        return key

    def read(self, key: str) -> bytes:
        path = self.resolve(key)
        try:
            return path.read_bytes()
        except OSError as e:
            raise PersistenceError(f"读取失败: {key}: {e}") from e

    def exists(self, key: str) -> bool:
        return self.resolve(key).is_file()

    @contextmanager
    def open_writer(self, key: str) -> Iterator[IO[bytes]]:
        path = self.resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            f = open(path, "wb")
        except OSError as e:
            raise PersistenceError(f"打开写入失败: {key}: {e}") from e
        with f:
            yield f

    def size(self, key: str) -> int:
        try:
            return self.resolve(key).stat().st_size
        except OSError as e:
            raise PersistenceError(f"读取大小失败: {key}: {e}") from e
