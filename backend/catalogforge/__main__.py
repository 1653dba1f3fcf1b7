"""
命令行入口

示例：
  python -m catalogforge create --shop demo.myshopify.com --settings settings.json
  python -m catalogforge run <job_id>
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError

from .config import get_config, reload_config, setup_logging
from .interfaces import CatalogForgeError
from .pipeline import JobManager
from .worker import run_catalog_job


def _load_settings(path: str | None) -> dict:
    if not path:
        return {}
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalogforge",
        description="Shopify商品目录导出（PDF + 图片包 + manifest）",
    )
    parser.add_argument("--config", default="", help="运行期配置YAML（默认：config/runtime.yaml）")
    parser.add_argument("-v", "--verbose", action="store_true", help="输出DEBUG日志")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="创建导出任务（QUEUED）")
    create.add_argument("--shop", required=True, help="店铺域名，如 demo.myshopify.com")
    create.add_argument("--settings", default="", help="导出设置JSON文件（camelCase）")

    run = sub.add_parser("run", help="执行导出任务")
    run.add_argument("job_id", help="任务ID")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = reload_config(Path(args.config)) if args.config else get_config()
    setup_logging(config, verbose=args.verbose)
    job_manager = JobManager(config.storage_dir)

    if args.command == "create":
        try:
            job = job_manager.create_job(args.shop, _load_settings(args.settings))
        except (OSError, ValueError, ValidationError) as e:
            print(f"导出设置无效: {e}", file=sys.stderr)
            return 2
        print(job.job_id)
        return 0

    if job_manager.get_job(args.job_id) is None:
        print(f"任务不存在: {args.job_id}", file=sys.stderr)
        return 2

    try:
        job = run_catalog_job(args.job_id, config=config, job_store=job_manager)
    except CatalogForgeError as e:
        print(f"任务失败: {e}", file=sys.stderr)
        return 1

    print(json.dumps(
        {
            "jobId": job.job_id,
            "status": job.status.value,
            "counts": job.counts.model_dump(by_alias=True),
            "files": [f.storage_key for f in job.files],
        },
        ensure_ascii=False,
        indent=2,
    ))
    return 0


if __name__ == "__main__":
    sys.exit(main())
