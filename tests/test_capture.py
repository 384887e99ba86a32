import threading

import pytest

from conftest import FakeCaptureResource
from core.errors import CaptureUnavailable
from core.services.capture import CapturedFrame, held_device
from core.services.capture_pipeline import FrameMailbox


class TestCaptureResource:

    def test_open_registers_device(self):
        resource = FakeCaptureResource()
        assert held_device() == "fake-camera"

        resource.release()
        assert held_device() is None
        assert resource.is_released

    def test_second_holder_is_refused(self):
        first = FakeCaptureResource()

        with pytest.raises(CaptureUnavailable):
            FakeCaptureResource()

        first.release()
        second = FakeCaptureResource()
        assert not second.is_released
        second.release()

    def test_only_one_device_per_process(self):
        with FakeCaptureResource("cam-a"):
            with pytest.raises(CaptureUnavailable):
                FakeCaptureResource("cam-b")
            assert held_device() == "cam-a"

        with FakeCaptureResource("cam-b"):
            assert held_device() == "cam-b"
        assert held_device() is None

    def test_refused_holder_does_not_free_the_slot(self):
        first = FakeCaptureResource("cam-a")
        with pytest.raises(CaptureUnavailable):
            FakeCaptureResource("cam-a")

        assert held_device() == "cam-a"
        first.release()
        assert held_device() is None

    def test_failed_open_leaves_device_free(self):
        with pytest.raises(CaptureUnavailable):
            FakeCaptureResource(fail_open=True)

        assert held_device() is None

    def test_release_is_idempotent(self):
        resource = FakeCaptureResource()

        resource.release()
        resource.release()

        assert resource.close_calls == 1

    def test_concurrent_release_closes_once(self):
        resource = FakeCaptureResource()
        threads = [threading.Thread(target=resource.release) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert resource.close_calls == 1
        assert held_device() is None

    def test_read_after_release(self):
        resource = FakeCaptureResource()
        ok, image = resource.read()
        assert ok and image is not None

        resource.release()
        assert resource.read() == (False, None)

    def test_context_manager_releases_on_error(self):
        with pytest.raises(ValueError):
            with FakeCaptureResource():
                raise ValueError("boom")

        assert held_device() is None


class TestFrameMailbox:

    @staticmethod
    def frame(n):
        return CapturedFrame(image=None, frame_number=n, timestamp=float(n))

    def test_newest_frame_wins(self):
        mailbox = FrameMailbox()

        assert mailbox.put(self.frame(1)) is False
        assert mailbox.put(self.frame(2)) is True

        assert mailbox.take(timeout=0).frame_number == 2
        assert mailbox.take(timeout=0) is None

    def test_take_times_out(self):
        assert FrameMailbox().take(timeout=0.01) is None

    def test_close_wakes_waiting_consumer(self):
        mailbox = FrameMailbox()
        result = []
        consumer = threading.Thread(target=lambda: result.append(mailbox.take(timeout=5)))
        consumer.start()

        mailbox.close()
        consumer.join(timeout=1)

        assert not consumer.is_alive()
        assert result == [None]

    def test_put_after_close_is_ignored(self):
        mailbox = FrameMailbox()
        mailbox.close()

        assert mailbox.put(self.frame(1)) is False
        assert mailbox.closed
        assert mailbox.take(timeout=0) is None
