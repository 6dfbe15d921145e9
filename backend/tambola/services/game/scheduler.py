import logging
from typing import Callable

logger = logging.getLogger(__name__)


class DrawTimer:
    """Handle for one recurring draw callback.

    A room stores its current handle; ``cancel`` is synchronous, and the
    callback is never invoked again once it returns.
    """

    def __init__(self, interval: float, callback: Callable[['DrawTimer'], None], label: str = ''):
        self.interval = interval
        self.callback = callback
        self.label = label
        self.cancelled = False
        self.fired = 0

    def cancel(self) -> None:
        if not self.cancelled:
            self.cancelled = True
            logger.info(f"[timer-cancel] {self.label} fired={self.fired}")

    def fire(self) -> None:
        if self.cancelled:
            return
        self.fired += 1
        self.callback(self)

    def __repr__(self):
        return f"DrawTimer({self.label!r}, interval={self.interval}, cancelled={self.cancelled})"


class SocketIOTimers:
    """Runs draw timers as Socket.IO background tasks.

    Uses ``socketio.sleep`` so the worker cooperates with whichever async
    mode the server picked (threading, eventlet or gevent).
    """

    def __init__(self, socketio, app=None):
        self.socketio = socketio
        self.app = app

    def start(self, interval: float, callback: Callable[[DrawTimer], None], label: str = '') -> DrawTimer:
        timer = DrawTimer(interval, callback, label)
        logger.info(f"[timer-set] {label} interval={interval}s")
        self.socketio.start_background_task(self._worker, timer)
        return timer

    def _worker(self, timer: DrawTimer) -> None:
        while not timer.cancelled:
            self.socketio.sleep(timer.interval)
            if timer.cancelled:
                break
            try:
                if self.app is not None:
                    with self.app.app_context():
                        timer.fire()
                else:
                    timer.fire()
            except Exception:
                logger.exception(f"[timer-error] {timer.label}")
                timer.cancel()
        logger.info(f"[timer-exit] {timer.label}")
