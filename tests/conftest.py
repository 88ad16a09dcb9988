"""Pytest configuration and fixtures"""
import hashlib
import json
import re
from dataclasses import dataclass

import fakeredis
import pytest
from redis.exceptions import NoScriptError, ResponseError
from upstash_redis.errors import UpstashError

from rediscart.cart.migration import CONVERSION_SCRIPT
from rediscart.config import CartConfig
from rediscart.resolver import ModelRegistry


WRONGTYPE = "WRONGTYPE Operation against a key holding the wrong kind of value"
NOSCRIPT = "NOSCRIPT No matching script. Please use EVAL."


def redis_glob_regex(pattern):
    """Compile a Redis KEYS pattern (* ? [...] and backslash escapes)."""
    parts = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            i += 1
            parts.append(re.escape(pattern[i]))
        elif ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        elif ch == "[" and "]" in pattern[i + 1:]:
            end = pattern.index("]", i + 1)
            body = pattern[i + 1:end]
            negate = body.startswith("^")
            body = re.escape(body[1:] if negate else body).replace("\\-", "-")
            parts.append(f"[{'^' if negate else ''}{body}]")
            i = end
        else:
            parts.append(re.escape(ch))
        i += 1
    return re.compile("".join(parts), re.DOTALL)


class FakeRedis:
    """
    In-memory stand-in for upstash_redis.asyncio.Redis.

    Supports the commands the cart uses plus sadd/hset for seeding legacy
    carts. The conversion script is executed by a Python emulation keyed on
    its SHA; the server-side script cache starts empty like a fresh server.

    Every EVAL/EVALSHA is recorded in ``script_calls``. Errors queued in
    ``errors[command]`` are raised, one per call, before the command runs.
    """

    def __init__(self):
        self.strings = {}
        self.sets = {}
        self.hashes = {}
        self.expiry = {}
        self.script_cache = set()
        self.script_calls = []
        self.errors = {}
        self.conversions = 0
        self._emulations = {
            hashlib.sha1(CONVERSION_SCRIPT.encode("utf-8")).hexdigest(): self._convert_legacy_cart,
        }

    def _maybe_fail(self, command):
        queued = self.errors.get(command)
        if queued:
            raise queued.pop(0)

    def _exists(self, key):
        return key in self.strings or key in self.sets or key in self.hashes

    def _drop(self, key):
        existed = self._exists(key)
        self.strings.pop(key, None)
        self.sets.pop(key, None)
        self.hashes.pop(key, None)
        self.expiry.pop(key, None)
        return existed

    def all_keys(self):
        return list(self.strings) + list(self.sets) + list(self.hashes)

    # String commands

    async def get(self, key):
        self._maybe_fail("get")
        if key in self.sets or key in self.hashes:
            raise UpstashError(WRONGTYPE)
        return self.strings.get(key)

    async def set(self, key, value, ex=None, **kwargs):
        self._maybe_fail("set")
        self._drop(key)
        self.strings[key] = value
        if ex is not None:
            self.expiry[key] = int(ex)
        return True

    # Key commands

    async def unlink(self, *keys):
        self._maybe_fail("unlink")
        return sum(1 for key in keys if self._drop(key))

    async def delete(self, *keys):
        return await self.unlink(*keys)

    async def rename(self, key, newkey):
        self._maybe_fail("rename")
        if not self._exists(key):
            raise UpstashError("ERR no such key")
        ttl = self.expiry.get(key)
        for store in (self.strings, self.sets, self.hashes):
            if key in store:
                value = store[key]
                self._drop(key)
                self._drop(newkey)
                store[newkey] = value
        if ttl is not None:
            self.expiry[newkey] = ttl
        return True

    async def ttl(self, key):
        if not self._exists(key):
            return -2
        return self.expiry.get(key, -1)

    async def expire(self, key, seconds):
        if not self._exists(key):
            return False
        self.expiry[key] = int(seconds)
        return True

    async def keys(self, pattern):
        regex = redis_glob_regex(pattern)
        return [key for key in self.all_keys() if regex.fullmatch(key)]

    # Legacy layout commands

    async def sadd(self, key, *members):
        if key in self.strings or key in self.hashes:
            raise UpstashError(WRONGTYPE)
        bucket = self.sets.setdefault(key, {})
        for member in members:
            bucket[member] = None
        return len(members)

    async def hset(self, key, values):
        if key in self.strings or key in self.sets:
            raise UpstashError(WRONGTYPE)
        self.hashes.setdefault(key, {}).update({k: str(v) for k, v in values.items()})
        return len(values)

    # Scripting

    async def evalsha(self, sha1, keys=None, args=None):
        self.script_calls.append(("evalsha", sha1))
        self._maybe_fail("evalsha")
        if sha1 not in self.script_cache:
            raise UpstashError(NOSCRIPT)
        return await self._emulations[sha1](keys or [], args or [])

    async def eval(self, script, keys=None, args=None):
        sha1 = hashlib.sha1(script.encode("utf-8")).hexdigest()
        self.script_calls.append(("eval", sha1))
        self._maybe_fail("eval")
        if sha1 not in self._emulations:
            raise UpstashError("ERR script not supported by FakeRedis")
        self.script_cache.add(sha1)
        return await self._emulations[sha1](keys or [], args or [])

    async def _convert_legacy_cart(self, keys, args):
        cart_key = keys[0]
        cart_id, ttl, line_item_prefix, subkey_pattern = args
        if cart_key in self.strings or cart_key in self.hashes:
            raise UpstashError(WRONGTYPE)

        line_item_keys = [line_item_prefix + suffix for suffix in self.sets.get(cart_key, {})]

        items = {}
        for line_item_key in line_item_keys:
            line_item = dict(self.hashes.get(line_item_key, {}))
            if "type" in line_item and "id" in line_item:
                items.setdefault(line_item["type"], {})[line_item["id"]] = line_item

        keys_to_delete = [cart_key] + await self.keys(subkey_pattern) + line_item_keys
        for key in keys_to_delete:
            self._drop(key)

        self.strings[cart_key] = json.dumps({"id": cart_id, "items": items})
        self.expiry[cart_key] = int(ttl)
        self.conversions += 1
        return "OK"


def _upstash_error(error):
    """Re-raise a redis-py reply error the way the Upstash client reports it."""
    message = str(error)
    # redis-py strips the NOSCRIPT prefix into the exception class
    if isinstance(error, NoScriptError) and not message.startswith("NOSCRIPT"):
        message = f"NOSCRIPT {message}"
    return UpstashError(message)


class LuaRedis:
    """
    Upstash-shaped async client over fakeredis.

    Unlike FakeRedis, scripts sent here run as real Lua, so the conversion
    script itself is exercised. Reply errors surface as UpstashError with
    their Redis prefix (WRONGTYPE, NOSCRIPT) intact.
    """

    def __init__(self):
        # Own FakeServer per client: a fresh keyspace and empty script cache
        self.server = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
        self.script_calls = []

    async def _call(self, command, *args, **kwargs):
        try:
            return getattr(self.server, command)(*args, **kwargs)
        except ResponseError as e:
            raise _upstash_error(e) from e

    def all_keys(self):
        return sorted(self.server.keys("*"))

    async def get(self, key):
        return await self._call("get", key)

    async def set(self, key, value, ex=None):
        return await self._call("set", key, value, ex=ex)

    async def unlink(self, *keys):
        return await self._call("unlink", *keys)

    async def rename(self, key, newkey):
        return await self._call("rename", key, newkey)

    async def ttl(self, key):
        return await self._call("ttl", key)

    async def expire(self, key, seconds):
        return await self._call("expire", key, seconds)

    async def sadd(self, key, *members):
        return await self._call("sadd", key, *members)

    async def hset(self, key, values):
        return await self._call("hset", key, mapping=values)

    async def evalsha(self, sha1, keys=None, args=None):
        keys, args = keys or [], args or []
        self.script_calls.append(("evalsha", sha1))
        return await self._call("evalsha", sha1, len(keys), *keys, *args)

    async def eval(self, script, keys=None, args=None):
        keys, args = keys or [], args or []
        self.script_calls.append(("eval", hashlib.sha1(script.encode("utf-8")).hexdigest()))
        return await self._call("eval", script, len(keys), *keys, *args)


@dataclass
class Book:
    id: str


@dataclass
class Pen:
    id: str


@pytest.fixture
def fake_redis():
    """Empty in-memory Redis"""
    return FakeRedis()


@pytest.fixture
def models():
    """Model registry with Book and Pen finders"""
    registry = ModelRegistry()

    async def find_book(item_id):
        return Book(id=item_id)

    async def find_pen(item_id):
        if item_id == "missing":
            raise LookupError(f"Pen {item_id} not found")
        return Pen(id=item_id)

    registry.register("Book", find_book)
    registry.register("Pen", find_pen)
    return registry


@pytest.fixture
def config(fake_redis, models):
    """Cart config bound to the fake Redis"""
    return CartConfig(redis=fake_redis, cart_expires_in=3600, namespace="test", models=models)


@pytest.fixture
def lua_redis():
    """fakeredis server that runs Lua scripts"""
    return LuaRedis()


@pytest.fixture
def lua_config(lua_redis, models):
    """Cart config bound to the Lua-capable fakeredis"""
    return CartConfig(redis=lua_redis, cart_expires_in=3600, namespace="test", models=models)


DEFAULT_LINE_ITEMS = {
    "a1": {"type": "Book", "id": "1", "unit_cost": "9.99", "quantity": "2"},
    "b2": {"type": "Pen", "id": "5", "unit_cost": "1.00", "quantity": "10"},
}


def legacy_seeder(store, config):
    """
    Async seeder for legacy carts.

    ``await seed()`` stores cart 42 in the legacy layout with a Book and a
    Pen line item and returns the cart key.
    """
    async def seed(cart_id="42", line_items=None):
        if line_items is None:
            line_items = DEFAULT_LINE_ITEMS
        key = config.keys.cart_key(cart_id)
        if line_items:
            await store.sadd(key, *line_items)
        for suffix, fields in line_items.items():
            await store.hset(config.keys.line_item_key(suffix), fields)
        return key

    return seed


@pytest.fixture
def legacy_cart(fake_redis, config):
    """Legacy cart seeder for the in-memory fake"""
    return legacy_seeder(fake_redis, config)


@pytest.fixture
def lua_legacy_cart(lua_redis, lua_config):
    """Legacy cart seeder for the Lua-capable fakeredis"""
    return legacy_seeder(lua_redis, lua_config)
