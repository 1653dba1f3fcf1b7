"""
打包器 - 生成图片包和manifest

职责：
1. 生成manifest.json（任务、店铺、设置与商品记录）
2. 流式写入images.zip：带价格角标的封面、manifest、README
3. 单个条目读取/合成失败只记录日志并跳过，不影响整个包
4. 写入器关闭后再读取大小

测试要点：
- test_manifest_structure: manifest结构
- test_package_zip_entries: ZIP条目
- test_overlay_failure_keeps_original: 合成失败回退原图
- test_missing_cover_file_skipped: 读取失败跳过条目
"""

from __future__ import annotations

import json
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..images.overlay import apply_price_overlay
from ..interfaces import CompositionError, IByteStore, PersistenceError
from ..models import ExportSettings, Job, ProductRecord
from ..models.job import utcnow
from ..processing.pricing import format_price

logger = logging.getLogger(__name__)

README_TEXT = "CatalogForge - cover images only.\n"


def manifest_key(job_id: str) -> str:
    return f"jobs/{job_id}/manifest.json"


def archive_key(job_id: str) -> str:
    return f"jobs/{job_id}/images.zip"


def build_manifest(
    job: Job,
    records: list[ProductRecord],
    generated_at: datetime | None = None,
) -> dict[str, Any]:
    """生成manifest内容（camelCase）"""
    return {
        "jobId": job.job_id,
        "shopDomain": job.shop_domain,
        "generatedAt": (generated_at or utcnow()).isoformat(),
        "settings": job.settings.model_dump(mode="json", by_alias=True),
        "products": [r.model_dump(mode="json", by_alias=True) for r in records],
    }


def write_manifest(byte_store: IByteStore, job_id: str, manifest: dict[str, Any]) -> str:
    """写入manifest.json，返回存储key"""
    data = json.dumps(manifest, ensure_ascii=False, indent=2).encode("utf-8")
    return byte_store.write(manifest_key(job_id), data)


@dataclass
class ArchiveResult:
    """图片包生成结果"""
    storage_key: str
    size_bytes: int
    entries: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class ArchiveBuilder:
    """图片包生成器"""

    def __init__(self, byte_store: IByteStore, settings: ExportSettings):
        self.byte_store = byte_store
        self.settings = settings

    def build(self, job_id: str, records: list[ProductRecord]) -> ArchiveResult:
        """流式写入 images.zip"""
        key = archive_key(job_id)
        entries: list[str] = []
        skipped: list[str] = []

        with self.byte_store.open_writer(key) as writer:
            with zipfile.ZipFile(writer, "w", zipfile.ZIP_DEFLATED) as zf:
                for record in records:
                    if not record.has_local_cover:
                        continue
                    data = self._entry_bytes(job_id, record)
                    if data is None:
                        skipped.append(record.cover_file_name)
                        continue
                    zf.writestr(record.cover_file_name, data)
                    entries.append(record.cover_file_name)

                manifest = manifest_key(job_id)
                if self.byte_store.exists(manifest):
                    zf.writestr("manifest.json", self.byte_store.read(manifest))
                    entries.append("manifest.json")

                zf.writestr("README.txt", README_TEXT)
                entries.append("README.txt")

        size = self.byte_store.size(key)
        logger.info(
            f"图片包生成完成: job={job_id} 条目{len(entries)}个, 跳过{len(skipped)}个, {size} bytes"
        )
        return ArchiveResult(storage_key=key, size_bytes=size, entries=entries, skipped=skipped)

    def _entry_bytes(self, job_id: str, record: ProductRecord) -> bytes | None:
        """读取封面并合成角标；读取失败返回None，合成失败回退原图"""
        try:
            data = self.byte_store.read(record.local_cover_path)
        except PersistenceError as e:
            logger.warning(f"封面读取失败，跳过: job={job_id} product={record.product_id}: {e}")
            return None

        price_text = format_price(record.price, self.settings.overlay_currency_prefix)
        extension = record.cover_file_name.rsplit(".", 1)[-1]
        try:
            return apply_price_overlay(data, price_text, self.settings.price_overlay, extension)
        except CompositionError as e:
            logger.warning(f"价格角标合成失败，使用原图: job={job_id} product={record.product_id}: {e}")
            return data
