"""
流水线模块 - 任务编排与执行

子模块：
- stages: 流水线各阶段定义
- executor: 流水线执行器
- job_manager: 任务管理
- packager: 图片包与manifest生成
"""

from .stages import CATALOG_STAGES, PipelineStage
from .executor import PipelineExecutor
from .job_manager import JobManager
from .packager import ArchiveBuilder, build_manifest, write_manifest

__all__ = [
    "ArchiveBuilder",
    "CATALOG_STAGES",
    "JobManager",
    "PipelineExecutor",
    "PipelineStage",
    "build_manifest",
    "write_manifest",
]
