import threading

from backup_storage import BackupSessionError, ErrorRecorder


def test_empty_recorder_has_no_error():
    recorder = ErrorRecorder("commerce/0", "b")
    assert not recorder.has_errors()
    assert recorder.error() is None
    assert recorder.get_failed_files() == []


def test_none_is_ignored():
    recorder = ErrorRecorder()
    recorder.record_error("0", None)
    assert not recorder.has_errors()


def test_error_aggregates_in_recording_order():
    recorder = ErrorRecorder("commerce/0", "b")
    first = OSError("disk full")
    second = ValueError("bad chunk")
    recorder.record_error("1", first)
    recorder.record_error("0", second)
    recorder.record_error("1", second)

    err = recorder.error()
    assert isinstance(err, BackupSessionError)
    assert err.file_errors == [("1", first), ("0", second), ("1", second)]
    assert err.failed_files == ["1", "0"]
    assert err.directory == "commerce/0"
    assert err.name == "b"
    assert "2 file(s) failed" in str(err)
    assert "disk full" in str(err)
    assert recorder.get_failed_files() == ["1", "0"]


def test_reset_error_for_file():
    recorder = ErrorRecorder()
    recorder.record_error("0", OSError("a"))
    recorder.record_error("1", OSError("b"))

    recorder.reset_error_for_file("0")
    assert recorder.get_failed_files() == ["1"]

    recorder.reset_error_for_file("1")
    assert not recorder.has_errors()
    assert recorder.error() is None


def test_concurrent_record_error():
    recorder = ErrorRecorder()

    def record(index):
        for i in range(100):
            recorder.record_error(f"f{index}", RuntimeError(str(i)))

    threads = [threading.Thread(target=record, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    err = recorder.error()
    assert len(err.file_errors) == 800
    assert sorted(recorder.get_failed_files()) == sorted(f"f{i}" for i in range(8))
