"""
流水线阶段定义

职责：
1. 定义各阶段的名称、进度区间与展示文本
2. 阶段开始时写入 progress_start 与 label

测试要点：
- test_stage_checkpoints: 阶段进度检查点 5/35/70/85/100
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StageEnum(str, Enum):
    """流水线阶段枚举"""
    COLLECT_PRODUCTS = "COLLECT_PRODUCTS"
    DOWNLOAD_COVERS = "DOWNLOAD_COVERS"
    BUILD_PDF = "BUILD_PDF"
    PACKAGE_ZIP = "PACKAGE_ZIP"


@dataclass(frozen=True)
class PipelineStage:
    """流水线阶段"""
    name: str
    progress_start: int  # 进度起点（0-100）
    progress_end: int    # 进度终点
    label: str           # current_step 展示文本


COMPLETED_LABEL = "Completed"
FALLBACK_LABEL = "Collecting products (fallback)"

# 商品目录导出流水线各阶段配置
CATALOG_STAGES: list[PipelineStage] = [
    PipelineStage(StageEnum.COLLECT_PRODUCTS.value, 5, 35, "Collecting products"),
    PipelineStage(StageEnum.DOWNLOAD_COVERS.value, 35, 70, "Downloading cover images"),
    PipelineStage(StageEnum.BUILD_PDF.value, 70, 85, "Building PDF"),
    PipelineStage(StageEnum.PACKAGE_ZIP.value, 85, 100, "Packaging ZIP"),
]
