"""
CatalogForge 导出核心模块

模块结构：
- config/      运行期配置与日志
- models/      数据模型定义（导出设置/商品/任务）
- shopify/     Shopify Admin GraphQL 客户端
- extraction/  商品抽取（Bulk查询 + 分页兜底）
- processing/  价格解析、排序与分组
- images/      封面下载与价格角标合成
- doc_gen/     PDF目录排版
- pipeline/    流水线编排、任务存储与打包
- storage.py   字节存储
- worker.py    任务入口
"""

__version__ = "0.1.0"
