"""
封面下载器单元测试

每个模块完成后必须运行：pytest tests/unit/test_acquirer.py -v
"""

import threading

import httpx

from catalogforge.images import ImageAcquirer
from catalogforge.images.acquirer import extension_for, safe_handle
from catalogforge.models import IssueType
from catalogforge.pipeline import JobManager


class ThreadRecordingJobManager(JobManager):
    """记录问题/计数写入所在线程的任务管理器"""

    def __init__(self, storage_dir):
        super().__init__(storage_dir)
        self.threads: list[int] = []

    def create_issue(self, job_id, issue):
        self.threads.append(threading.get_ident())
        return super().create_issue(job_id, issue)

    def increment_counts(self, job_id, **deltas):
        self.threads.append(threading.get_ident())
        return super().increment_counts(job_id, **deltas)


def _transport(handler):
    return httpx.MockTransport(handler)


def _acquirer(job_manager, byte_store, handler, **kwargs) -> ImageAcquirer:
    kwargs.setdefault("retry_backoff_sec", 0)
    return ImageAcquirer(job_manager, byte_store, transport=_transport(handler), **kwargs)


class TestHelpers:
    """辅助函数测试"""

    def test_extension_for(self):
        assert extension_for("image/png") == "png"
        assert extension_for("image/PNG; charset=binary") == "png"
        assert extension_for("image/webp") == "jpg"
        assert extension_for(None) == "jpg"

    def test_safe_handle(self, make_record):
        """测试文件名安全的标识"""
        assert safe_handle(make_record("p1", handle="blue-mug")) == "blue-mug"
        assert safe_handle(make_record("p1", handle="a/b c")) == "a-b-c"
        assert safe_handle(make_record("gid://shopify/Product/9", handle=None)) == "gid-shopify-Product-9"


class TestImageAcquirer:
    """下载器测试"""

    def test_missing_cover_issue(self, job_manager, byte_store, make_record):
        """测试无封面不发请求"""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, content=b"x")

        job = job_manager.create_job("demo.myshopify.com")
        result = _acquirer(job_manager, byte_store, handler).acquire(
            job.job_id, [make_record("p1", handle="mug")]
        )

        assert requests == []
        assert result.has_failures
        assert result.records[0].local_cover_path is None
        job = job_manager.get_job(job.job_id)
        assert [i.type for i in job.issues] == [IssueType.MISSING_COVER]
        assert job.issues[0].details == {"reason": "No cover image found"}
        assert job.counts.products_processed == 1
        assert job.counts.images_failed == 1

    def test_retry_then_success(self, job_manager, byte_store, make_record, png_bytes):
        """测试前两次失败第三次成功，无问题记录"""
        calls = []

        def handler(request):
            calls.append(str(request.url))
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, content=png_bytes, headers={"content-type": "image/png"})

        job = job_manager.create_job("demo.myshopify.com")
        record = make_record("p1", handle="mug", cover_url="https://cdn/mug.png")
        result = _acquirer(job_manager, byte_store, handler).acquire(job.job_id, [record])

        assert len(calls) == 3
        assert not result.has_failures
        updated = result.records[0]
        assert updated.local_cover_path == f"jobs/{job.job_id}/images/products/mug/cover.png"
        assert updated.cover_file_name == "images/mug.png"
        assert byte_store.read(updated.local_cover_path) == png_bytes

        job = job_manager.get_job(job.job_id)
        assert job.issues == []
        assert job.counts.images_downloaded == 1
        assert job.counts.images_failed == 0

    def test_retry_exhausted(self, job_manager, byte_store, make_record):
        """测试三次失败，记一条问题"""
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        job = job_manager.create_job("demo.myshopify.com")
        record = make_record("p1", handle="mug", cover_url="https://cdn/mug.jpg")
        result = _acquirer(job_manager, byte_store, handler).acquire(job.job_id, [record])

        assert len(calls) == 3
        assert result.has_failures
        assert result.records[0] == record

        job = job_manager.get_job(job.job_id)
        assert len(job.issues) == 1
        issue = job.issues[0]
        assert issue.type == IssueType.IMAGE_DOWNLOAD_FAILED
        assert issue.details["url"] == "https://cdn/mug.jpg"
        assert issue.details["attempts"] == 3
        assert "ConnectError" in issue.details["error"]

    def test_output_keeps_input_order(self, job_manager, byte_store, make_record, jpeg_bytes):
        """测试输出顺序与输入一致，计数总数正确"""

        def handler(request):
            return httpx.Response(200, content=jpeg_bytes, headers={"content-type": "image/jpeg"})

        records = [
            make_record(f"p{i}", handle=f"item-{i}", cover_url=f"https://cdn/{i}.jpg")
            for i in range(12)
        ]
        job = job_manager.create_job("demo.myshopify.com")
        result = _acquirer(job_manager, byte_store, handler, workers=4).acquire(job.job_id, records)

        assert [r.product_id for r in result.records] == [f"p{i}" for i in range(12)]
        assert all(r.cover_file_name == f"images/item-{i}.jpg" for i, r in enumerate(result.records))

        counts = job_manager.get_job(job.job_id).counts
        assert counts.products_total == 12
        assert counts.products_processed == 12
        assert counts.images_downloaded == 12

    def test_duplicate_handles_get_suffix(self, job_manager, byte_store, make_record, jpeg_bytes):
        """测试重复 handle 追加序号"""

        def handler(request):
            return httpx.Response(200, content=jpeg_bytes, headers={"content-type": "image/jpeg"})

        records = [
            make_record("p1", handle="mug", cover_url="https://cdn/1.jpg"),
            make_record("p2", handle="mug", cover_url="https://cdn/2.jpg"),
            make_record("p3", handle="mug-2", cover_url="https://cdn/3.jpg"),
        ]
        job = job_manager.create_job("demo.myshopify.com")
        result = _acquirer(job_manager, byte_store, handler).acquire(job.job_id, records)

        names = [r.cover_file_name for r in result.records]
        assert names == ["images/mug.jpg", "images/mug-2.jpg", "images/mug-2-2.jpg"]

    def test_empty_input(self, job_manager, byte_store):
        """测试空输入"""
        job = job_manager.create_job("demo.myshopify.com")
        result = _acquirer(job_manager, byte_store, lambda r: httpx.Response(200)).acquire(job.job_id, [])
        assert result.records == []
        assert not result.has_failures

    def test_invalid_url_consumes_attempts(self, job_manager, byte_store, make_record):
        """测试非法URL（超长）按下载失败处理，不中断任务"""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, content=b"x")

        job = job_manager.create_job("demo.myshopify.com")
        record = make_record("p1", handle="mug", cover_url="https://cdn/" + "a" * 70000)
        result = _acquirer(job_manager, byte_store, handler).acquire(job.job_id, [record])

        assert calls == []
        assert result.has_failures
        job = job_manager.get_job(job.job_id)
        assert [i.type for i in job.issues] == [IssueType.IMAGE_DOWNLOAD_FAILED]
        assert job.issues[0].details["attempts"] == 3
        assert "InvalidURL" in job.issues[0].details["error"]
        assert job.counts.products_processed == 1
        assert job.counts.images_failed == 1

    def test_store_calls_off_event_loop(self, temp_dir, byte_store, make_record, png_bytes):
        """测试问题与计数的存储调用不在事件循环线程执行"""
        store = ThreadRecordingJobManager(temp_dir)

        def handler(request):
            return httpx.Response(200, content=png_bytes, headers={"content-type": "image/png"})

        job = store.create_job("demo.myshopify.com")
        records = [
            make_record("p1", handle="mug", cover_url="https://cdn/mug.png"),
            make_record("p2", handle="cup"),
        ]
        _acquirer(store, byte_store, handler).acquire(job.job_id, records)

        loop_thread = threading.get_ident()
        assert len(store.threads) == 3
        assert loop_thread not in store.threads

        counts = store.get_job(job.job_id).counts
        assert counts.products_processed == 2
        assert counts.images_downloaded == 1
        assert counts.images_failed == 1
