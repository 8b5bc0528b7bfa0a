import sys
import threading

FRAMES = ["/", "-", "\\", "|"]


class Spinner:
    """Spinner shown while a blocking backend call is in flight.

    Frames are written under the same lock that guards the stop flag, so once
    stop() returns nothing more reaches the stream.
    """

    def __init__(self, stream=None, interval: float = 0.1, enabled: bool = None):
        self.stream = stream or sys.stdout
        self.interval = interval
        if enabled is None:
            isatty = getattr(self.stream, "isatty", None)
            enabled = bool(isatty and isatty())
        self.enabled = enabled
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._thread = None

    def _spin(self):
        i = 0
        while True:
            with self._lock:
                if self._stop.is_set():
                    return
                self.stream.write(f"\r{FRAMES[i % len(FRAMES)]}")
                self.stream.flush()
            i += 1
            self._stop.wait(self.interval)

    def start(self):
        if not self.enabled or self._thread is not None:
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._spin, daemon=True)
        self._thread.start()
        return self

    def stop(self):
        if self._thread is None:
            return
        with self._lock:
            self._stop.set()
        self._thread.join(timeout=self.interval * 5)
        self._thread = None
        with self._lock:
            self.stream.write("\x1b[2K\r")
            self.stream.flush()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
