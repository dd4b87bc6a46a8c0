"""Integration tests for the complete pipeline."""

import json

import pytest

from image_dimensions.core.factories import ProcessingPipelineFactory, StoreFactory
from image_dimensions.core.models import PipelineConfig
from image_dimensions.testing.fakes import (
    FakeLogger,
    FakeS3Client,
    build_jpeg_header,
    create_test_image,
    setup_test_environment,
)


@pytest.fixture(params=["serial", "multithread"])
def processor(request):
    return request.param


def _orchestrator(store, cache, processor, **config_kwargs):
    config = PipelineConfig(processor=processor, **config_kwargs)
    return ProcessingPipelineFactory.create_orchestrator(
        config, store, cache, logger=FakeLogger()
    )


class TestPipelineIntegration:
    """Integration tests for the complete extraction pipeline."""

    def test_end_to_end(self, processor):
        """Test a mixed prefix is processed into the cache."""
        store, cache = setup_test_environment()

        summary = _orchestrator(store, cache, processor).run("portfolio/")

        assert summary.total == 6
        assert summary.existing == 0
        assert summary.selected == 5
        assert summary.processed == 4
        assert summary.skipped == 1
        assert summary.failed == 0
        assert json.loads(cache.entries["portfolio/photo1.jpg"]) == {
            "width": 200,
            "height": 150,
        }
        assert json.loads(cache.entries["portfolio/graphic.png"]) == {
            "width": 64,
            "height": 48,
        }
        assert "portfolio/notes.txt" not in cache.entries
        assert "elsewhere/photo9.jpg" not in cache.entries
        assert "portfolio/" not in store.opened

    def test_idempotent(self, processor):
        """Test a second run over an unchanged store writes nothing."""
        store, cache = setup_test_environment()
        orchestrator = _orchestrator(store, cache, processor)

        orchestrator.run("portfolio/")
        writes_after_first = list(cache.put_calls)
        second = orchestrator.run("portfolio/")

        assert second.processed == 0
        assert second.existing == 4
        assert cache.put_calls == writes_after_first

    def test_partial_failures_are_isolated(self, processor):
        """Test failing objects do not stop the others and are retried next run."""
        store, cache = setup_test_environment()
        store.fail_open.add("portfolio/photo2.jpg")
        cache.fail_put.add("portfolio/panorama.jpg")

        first = _orchestrator(store, cache, processor).run("portfolio/")

        assert first.processed == 2
        assert first.failed == 2
        assert first.skipped == 1

        store.fail_open.clear()
        cache.fail_put.clear()
        second = _orchestrator(store, cache, processor).run("portfolio/")

        assert second.existing == 2
        assert second.processed == 2

    def test_bytes_read_bounded_by_cap(self, processor):
        store, cache = setup_test_environment()
        store.add_object("portfolio/huge.jpg", build_jpeg_header(4000, 3000) + b"\x00" * 200000)

        _orchestrator(store, cache, processor, chunk_size=1024).run(
            "portfolio/", read_cap=4096
        )

        assert store.streams["portfolio/huge.jpg"].bytes_read <= 4096
        assert json.loads(cache.entries["portfolio/huge.jpg"]) == {
            "width": 4000,
            "height": 3000,
        }

    def test_slow_reads_time_out_without_cache_write(self, processor):
        store, cache = setup_test_environment()
        store.add_object("portfolio/slow.jpg", b"\xff\xd8" + b"\x00" * 400)
        store.max_chunk = 16
        store.read_delay = 0.03

        summary = _orchestrator(store, cache, processor, object_timeout=0.05).run(
            "portfolio/", read_cap=64
        )

        assert summary.failed >= 1
        assert "portfolio/slow.jpg" not in cache.entries

    def test_wide_image_logged_once(self):
        store, cache = setup_test_environment()
        logger = FakeLogger()
        orchestrator = ProcessingPipelineFactory.create_orchestrator(
            PipelineConfig(processor="serial"), store, cache, logger=logger
        )

        orchestrator.run("portfolio/")

        wide = [log for log in logger.logs if log["message"] == "Wide image detected"]
        assert [log["identifier"] for log in wide] == ["portfolio/panorama.jpg"]


class TestS3Integration:
    """End-to-end runs against the fake S3 client."""

    def test_run_through_s3_adapters(self):
        client = FakeS3Client()
        images = client.create_bucket("images")
        images.add_object("photos/mainImages/", b"")
        images.add_object("photos/mainImages/a.jpg", create_test_image(320, 240))
        images.add_object("photos/mainImages/b.png", create_test_image(20, 10, format="PNG"))
        client.create_bucket("dims")

        config = PipelineConfig.scheduled_profile(
            bucket="images", cache_bucket="dims", cache_namespace="v1/"
        )
        store = StoreFactory.create_object_store(config, client)
        cache = StoreFactory.create_cache(config, client)

        summary = _orchestrator(store, cache, "multithread").run(
            config.prefix, read_cap=config.read_cap
        )

        assert summary.processed == 2
        stored = client.get_bucket("dims").get_object("v1/photos/mainImages/a.jpg")
        assert json.loads(stored.body) == {"width": 320, "height": 240}
        assert cache.list_keys(config.prefix) == [
            "photos/mainImages/a.jpg",
            "photos/mainImages/b.png",
        ]
        assert set(client.ranges_requested) == {f"bytes=0-{config.read_cap - 1}"}
