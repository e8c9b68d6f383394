import asyncio
import json
from typing import AsyncIterator

from extra.utils.logging import debug, logged

from .watcher import ChangeEvent


class LiveReload:
	"""Broadcasts change events to the connected runtime clients, as
	server-sent events."""

	def __init__(self, backlog: int = 100):
		self.backlog: int = backlog
		self.subscribers: set[asyncio.Queue[ChangeEvent | None]] = set()

	def publish(self, change: ChangeEvent) -> int:
		"""Publishes the change to every subscriber, returning how many
		received it. Subscribers that fell behind are dropped."""
		count: int = 0
		for queue in list(self.subscribers):
			try:
				queue.put_nowait(change)
				count += 1
			except asyncio.QueueFull:
				self.subscribers.discard(queue)
		logged(debug) and debug(
			"Published changes", Changes=change.changes, Subscribers=count
		)
		return count

	def subscribe(self) -> "asyncio.Queue[ChangeEvent | None]":
		queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue(self.backlog)
		self.subscribers.add(queue)
		return queue

	def unsubscribe(self, queue: "asyncio.Queue[ChangeEvent | None]") -> None:
		self.subscribers.discard(queue)

	def close(self) -> None:
		for queue in list(self.subscribers):
			try:
				queue.put_nowait(None)
			except asyncio.QueueFull:
				pass
		self.subscribers.clear()

	async def stream(self) -> AsyncIterator[str]:
		"""Yields the server-sent events for one client."""
		queue = self.subscribe()
		try:
			yield "retry: 1000\n\n"
			while (change := await queue.get()) is not None:
				data = json.dumps({"changes": change.changes, "duration": change.duration})
				yield f"event: update\ndata: {data}\n\n"
		finally:
			self.unsubscribe(queue)


# EOF
