"""Manual clock implementing the timer backend contract for tests."""


class ManualTimer:
    def __init__(self):
        self.now = 0
        self._next_handle = 1
        self._pending = {}

    def add(self, delay_ms, callback):
        handle = self._next_handle
        self._next_handle += 1
        self._pending[handle] = (self.now + delay_ms, callback)
        return handle

    def remove(self, handle):
        self._pending.pop(handle, None)

    @property
    def pending_count(self):
        return len(self._pending)

    def advance(self, ms):
        """Move the clock forward, firing due callbacks in deadline order."""
        target = self.now + ms
        while True:
            due = [(when, handle) for handle, (when, _) in self._pending.items() if when <= target]
            if not due:
                break
            when, handle = min(due)
            _, callback = self._pending.pop(handle)
            self.now = when
            callback()
        self.now = target
