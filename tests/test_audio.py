import pytest

from mockinterview.core.exceptions import AudioCaptureError
from mockinterview.services.audio import AudioRecorder


def test_recording_joins_chunks():
    recorder = AudioRecorder(mime_type="audio/ogg")
    recorder.start()
    recorder.append(b"abc")
    recorder.append(b"")
    assert recorder.append(b"def") == 2

    recording = recorder.stop()
    assert recording.data == b"abcdef"
    assert recording.size == 6
    assert recording.mime_type == "audio/ogg"
    assert not recorder.is_recording


def test_stop_without_audio():
    recorder = AudioRecorder()
    recorder.start()
    with pytest.raises(AudioCaptureError) as exc:
        recorder.stop()
    assert exc.value.message == "No audio provided"
    assert exc.value.status_code == 400


def test_misuse_is_rejected():
    recorder = AudioRecorder()
    with pytest.raises(AudioCaptureError):
        recorder.append(b"x")
    with pytest.raises(AudioCaptureError):
        recorder.stop()

    recorder.start()
    with pytest.raises(AudioCaptureError):
        recorder.start()


def test_restart_after_cleanup():
    recorder = AudioRecorder()
    recorder.start()
    recorder.append(b"stale")
    recorder.cleanup()

    recorder.start()
    recorder.append(b"fresh")
    assert recorder.stop().data == b"fresh"
