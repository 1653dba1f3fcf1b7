"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(job_manager, sample_settings):
        job = job_manager.create_job("demo.myshopify.com", sample_settings)
"""

from __future__ import annotations

import io
import tempfile
from pathlib import Path
from typing import Any, Callable, Generator, Iterator

import pytest
from PIL import Image

from catalogforge.config import RuntimeConfig
from catalogforge.interfaces import BulkOperation, ICatalogSource, ProductPage
from catalogforge.models import (
    CollectionRef,
    ExportSettings,
    ProductAccumulator,
    ProductRecord,
    ProductVariant,
    ScalarPrice,
)
from catalogforge.pipeline import JobManager
from catalogforge.storage import LocalByteStore


# ============================================================================
# 文件 Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ============================================================================
# 配置 / 存储 Fixtures
# ============================================================================

@pytest.fixture
def runtime_config(temp_dir: Path) -> RuntimeConfig:
    """运行期配置（存储在临时目录，无重试等待）"""
    config = RuntimeConfig(storage_dir=temp_dir)
    config.retries.retry_backoff_ms = 0
    return config


@pytest.fixture
def byte_store(temp_dir: Path) -> LocalByteStore:
    """本地字节存储"""
    return LocalByteStore(temp_dir)


@pytest.fixture
def job_manager(temp_dir: Path) -> JobManager:
    """任务管理器"""
    return JobManager(temp_dir)


# ============================================================================
# 数据模型 Fixtures
# ============================================================================

@pytest.fixture
def sample_settings() -> ExportSettings:
    """默认导出设置"""
    return ExportSettings()


@pytest.fixture
def make_accumulator() -> Callable[..., ProductAccumulator]:
    """商品累加器工厂"""

    def _make(
        product_id: str = "gid://shopify/Product/1",
        title: str | None = "Sample",
        prices: list[str | None] | None = None,
        **fields: Any,
    ) -> ProductAccumulator:
        variants = [
            ProductVariant(id=f"{product_id}-v{i}", title=f"Variant {i}", price=price)
            for i, price in enumerate(prices or [], start=1)
        ]
        return ProductAccumulator(id=product_id, title=title, variants=variants, **fields)

    return _make


@pytest.fixture
def make_record() -> Callable[..., ProductRecord]:
    """商品记录工厂"""

    def _make(
        product_id: str = "gid://shopify/Product/1",
        title: str | None = "Sample",
        price: str | None = "10.00",
        collections: list[tuple[str, str]] | None = None,
        **fields: Any,
    ) -> ProductRecord:
        return ProductRecord(
            product_id=product_id,
            title=title,
            price=ScalarPrice(value=price) if price is not None else None,
            collections=tuple(CollectionRef(id=cid, title=t) for cid, t in collections or []),
            **fields,
        )

    return _make


# ============================================================================
# 图片 Fixtures
# ============================================================================

def _image_bytes(fmt: str, size: tuple[int, int] = (200, 160)) -> bytes:
    image = Image.new("RGB", size, (30, 120, 200))
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """PNG图片字节"""
    return _image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    """JPEG图片字节"""
    return _image_bytes("JPEG")


# ============================================================================
# 商品源 Fixtures
# ============================================================================

class FakeCatalogSource(ICatalogSource):
    """可编排的商品源替身"""

    def __init__(self):
        self.start_error: Exception | None = None
        self.statuses: list[BulkOperation] = [
            BulkOperation(id="bulk-1", status="COMPLETED", url="https://results/bulk.jsonl")
        ]
        self.bulk_lines: list[dict[str, Any]] = []
        self.pages: list[ProductPage] = []
        self.submitted_queries: list[str] = []
        self.page_calls: list[tuple[str, str | None, bool]] = []
        self.status_calls = 0

    def start_bulk_query(self, query: str) -> str:
        self.submitted_queries.append(query)
        if self.start_error:
            raise self.start_error
        return "bulk-1"

    def get_bulk_operation(self, operation_id: str) -> BulkOperation:
        index = min(self.status_calls, len(self.statuses) - 1)
        self.status_calls += 1
        return self.statuses[index]

    def iter_bulk_results(self, url: str) -> Iterator[dict[str, Any]]:
        return iter(self.bulk_lines)

    def fetch_products_page(
        self,
        search: str,
        cursor: str | None,
        include_collections: bool,
    ) -> ProductPage:
        self.page_calls.append((search, cursor, include_collections))
        index = len(self.page_calls) - 1
        return self.pages[index] if index < len(self.pages) else ProductPage()


@pytest.fixture
def fake_source() -> FakeCatalogSource:
    """商品源替身"""
    return FakeCatalogSource()


class FakeClock:
    """可手动推进的时钟（sleep 即推进）"""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    """假时钟"""
    return FakeClock()
