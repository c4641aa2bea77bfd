import threading
from collections import deque
from typing import Iterator, Optional


class QueueClosed(Exception):
    """向已关闭的队列添加元素"""


class WorkQueue:
    """
    单生产者、多消费者的可关闭 FIFO 队列
    生产者调用 close() 后，队列取空时所有消费者的迭代自然结束。
    """

    def __init__(self, maxsize: int = 0):
        """
        :param maxsize: 队列容量，0 表示不限制
        """
        self.maxsize = maxsize
        self._items = deque()
        self._closed = False
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)

    def put(self, item: str) -> None:
        with self._not_full:
            while self.maxsize > 0 and len(self._items) >= self.maxsize and not self._closed:
                self._not_full.wait()
            if self._closed:
                raise QueueClosed("队列已关闭")
            self._items.append(item)
            self._not_empty.notify()

    def get(self) -> Optional[str]:
        """取出一个元素；队列已关闭且为空时返回 None"""
        with self._not_empty:
            while not self._items and not self._closed:
                self._not_empty.wait()
            if not self._items:
                return None
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

    def cancel(self) -> int:
        """关闭队列并丢弃尚未取出的元素，返回丢弃的数量"""
        with self._lock:
            discarded = len(self._items)
            self._items.clear()
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()
            return discarded

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[str]:
        while True:
            item = self.get()
            if item is None:
                return
            yield item
