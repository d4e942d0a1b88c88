import asyncio
import copy
import json
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from app.core import paths

logger = logging.getLogger(__name__)

# (path, value); a value of None removes the path
Write = Tuple[str, Any]
SnapshotCallback = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class SyncStore(Protocol):
    """Realtime store the board engine writes to and reads snapshots from.

    Writes are per path, last-write-wins. ``write_batch`` issues sibling writes
    together but promises no atomicity across them.
    """

    async def get(self, path: str) -> Any: ...

    async def set(self, path: str, value: Any) -> None: ...

    async def remove(self, path: str) -> None: ...

    async def write_batch(self, writes: List[Write]) -> None: ...

    async def subscribe(self, path: str, on_snapshot: SnapshotCallback) -> Unsubscribe: ...


def prune(value: Any) -> Any:
    """Drop empty maps recursively; an empty result is stored as absent."""
    if isinstance(value, dict):
        pruned = {}
        for key, child in value.items():
            child = prune(child)
            if child is not None:
                pruned[key] = child
        return pruned or None
    return value


class MemoryStore:
    """In-process store with push notifications to subscribers."""

    def __init__(self):
        self._root: Dict[str, Any] = {}
        self._subscribers: Dict[str, List[SnapshotCallback]] = defaultdict(list)

    def _read(self, path: str) -> Any:
        node: Any = self._root
        for segment in paths.split(path):
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def _apply(self, path: str, value: Any) -> None:
        segments = paths.split(path)
        value = prune(copy.deepcopy(value))
        if value is None:
            self._delete(segments)
            return
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = node[segment] = {}
            node = child
        node[segments[-1]] = value

    def _delete(self, segments: List[str]) -> None:
        trail = []
        node: Any = self._root
        for segment in segments[:-1]:
            if not isinstance(node, dict) or segment not in node:
                return
            trail.append((node, segment))
            node = node[segment]
        if isinstance(node, dict):
            node.pop(segments[-1], None)
        # collapse parents left empty
        for parent, segment in reversed(trail):
            if parent[segment]:
                break
            del parent[segment]

    def _notify(self, written: List[str]) -> None:
        for path, callbacks in list(self._subscribers.items()):
            if not any(paths.related(path, w) for w in written):
                continue
            snapshot = self._read(path)
            for callback in list(callbacks):
                callback(copy.deepcopy(snapshot))

    async def get(self, path: str) -> Any:
        return copy.deepcopy(self._read(path))

    async def set(self, path: str, value: Any) -> None:
        self._apply(path, value)
        self._notify([path])

    async def remove(self, path: str) -> None:
        self._apply(path, None)
        self._notify([path])

    async def write_batch(self, writes: List[Write]) -> None:
        for path, value in writes:
            self._apply(path, value)
        self._notify([path for path, _ in writes])

    async def subscribe(self, path: str, on_snapshot: SnapshotCallback) -> Unsubscribe:
        self._subscribers[path].append(on_snapshot)
        on_snapshot(copy.deepcopy(self._read(path)))

        def unsubscribe():
            callbacks = self._subscribers.get(path, [])
            if on_snapshot in callbacks:
                callbacks.remove(on_snapshot)
            if not callbacks:
                self._subscribers.pop(path, None)

        return unsubscribe


# --- Redis backed store --- #


def flatten(value: Any, prefix: str = "") -> Dict[str, str]:
    """Map a nested value onto ``leaf path -> JSON`` hash fields."""
    value = prune(value)
    if value is None:
        return {}
    if not isinstance(value, dict):
        return {prefix: json.dumps(value)}
    fields: Dict[str, str] = {}
    for key, child in value.items():
        fields.update(flatten(child, f"{prefix}/{key}" if prefix else key))
    return fields


def unflatten(fields: Dict[str, str]) -> Optional[dict]:
    tree: Dict[str, Any] = {}
    for field in sorted(fields):
        node = tree
        segments = paths.split(field)
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = node[segment] = {}
            node = child
        node[segments[-1]] = json.loads(fields[field])
    return tree or None


def _text(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else value


class RedisStore:
    """Store backed by one Redis hash per board.

    Every leaf path below ``boards/{id}`` is a hash field holding JSON. Change
    notifications travel over a pub/sub channel per board.
    """

    def __init__(self, redis, namespace: str = "retro"):
        self.redis = redis
        self.namespace = namespace
        self._subscribers: Dict[str, List[Tuple[str, SnapshotCallback]]] = defaultdict(list)
        self._listeners: Dict[str, asyncio.Task] = {}

    @staticmethod
    def _split(path: str) -> Tuple[str, str]:
        segments = paths.split(path)
        if len(segments) < 2:
            raise ValueError(f"Path must address a board: {path!r}")
        return "/".join(segments[:2]), "/".join(segments[2:])

    def _key(self, root: str) -> str:
        return f"{self.namespace}:{root}"

    def _channel(self, root: str) -> str:
        return f"{self.namespace}:{root}:changes"

    async def _fields_under(self, key: str, rel: str) -> List[str]:
        fields = [_text(f) for f in await self.redis.hkeys(key)]
        if not rel:
            return fields
        return [f for f in fields if f == rel or f.startswith(rel + "/")]

    async def _write(self, path: str, value: Any) -> None:
        root, rel = self._split(path)
        key = self._key(root)
        mapping = flatten(value, rel)
        stale = [f for f in await self._fields_under(key, rel) if f not in mapping]
        # a leaf stored at an ancestor would shadow the new subtree
        segments = paths.split(rel)
        stale += ["/".join(segments[:i]) for i in range(1, len(segments))]
        async with self.redis.pipeline(transaction=False) as pipe:
            if stale:
                pipe.hdel(key, *stale)
            if mapping:
                pipe.hset(key, mapping=mapping)
            await pipe.execute()

    async def _publish(self, written: List[str]) -> None:
        roots = defaultdict(list)
        for path in written:
            roots[self._split(path)[0]].append(path)
        for root, changed in roots.items():
            await self.redis.publish(self._channel(root), json.dumps(changed))

    async def get(self, path: str) -> Any:
        root, rel = self._split(path)
        raw = await self.redis.hgetall(self._key(root))
        node: Any = unflatten({_text(k): _text(v) for k, v in raw.items()})
        for segment in paths.split(rel):
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    async def set(self, path: str, value: Any) -> None:
        await self._write(path, value)
        await self._publish([path])

    async def remove(self, path: str) -> None:
        await self._write(path, None)
        await self._publish([path])

    async def write_batch(self, writes: List[Write]) -> None:
        await asyncio.gather(*[self._write(path, value) for path, value in writes])
        await self._publish([path for path, _ in writes])

    async def subscribe(self, path: str, on_snapshot: SnapshotCallback) -> Unsubscribe:
        root, _ = self._split(path)
        entry = (path, on_snapshot)
        self._subscribers[root].append(entry)
        if root not in self._listeners:
            self._listeners[root] = asyncio.create_task(self._listen(root))
        on_snapshot(await self.get(path))

        def unsubscribe():
            entries = self._subscribers.get(root, [])
            if entry in entries:
                entries.remove(entry)
            if not entries:
                self._subscribers.pop(root, None)
                task = self._listeners.pop(root, None)
                if task:
                    task.cancel()

        return unsubscribe

    async def _listen(self, root: str) -> None:
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self._channel(root))
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                changed = json.loads(_text(message["data"]))
                for path, callback in list(self._subscribers.get(root, [])):
                    if not any(paths.related(path, c) for c in changed):
                        continue
                    try:
                        callback(await self.get(path))
                    except Exception as e:
                        logger.error(f"Snapshot callback failed for {path}: {e}", exc_info=True)
        finally:
            await pubsub.reset()

    async def close(self) -> None:
        for task in self._listeners.values():
            task.cancel()
        self._listeners.clear()
        self._subscribers.clear()
