from dataclasses import dataclass

from mockinterview.core.exceptions import AudioCaptureError

DEFAULT_MIME_TYPE = "audio/webm"


@dataclass(frozen=True)
class Recording:
    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE

    @property
    def size(self) -> int:
        return len(self.data)


class AudioRecorder:
    """Collects streamed audio chunks into one finite recording.

    Stopping early is allowed: whatever was captured so far becomes the recording.
    """

    def __init__(self, mime_type: str = DEFAULT_MIME_TYPE):
        self.mime_type = mime_type
        self.buffer: list[bytes] = []
        self.is_recording = False

    def start(self) -> None:
        if self.is_recording:
            raise AudioCaptureError("Recording already in progress")
        self.buffer = []
        self.is_recording = True

    def append(self, chunk: bytes) -> int:
        if not self.is_recording:
            raise AudioCaptureError("Not recording")
        if chunk:
            self.buffer.append(chunk)
        return len(self.buffer)

    def stop(self) -> Recording:
        if not self.is_recording:
            raise AudioCaptureError("Not recording")
        self.is_recording = False
        data = b"".join(self.buffer)
        self.buffer = []
        if not data:
            raise AudioCaptureError("No audio provided")
        return Recording(data=data, mime_type=self.mime_type)

    def cleanup(self) -> None:
        self.buffer = []
        self.is_recording = False
