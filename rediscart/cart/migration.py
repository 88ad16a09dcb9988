"""
Legacy cart conversion.

Old carts were stored as a Redis set of line item suffixes under the cart key,
with every line item in its own hash. The conversion script folds them into
the current single JSON document in one atomic step: it reads the set and
every hash, deletes all of them (plus any ``{cart_key}:*`` sub-keys) and
writes the document with a fresh TTL. No other client can see a half
converted cart.

Known race: the ``{cart_key}:*`` match also deletes sub-keys that another
writer created just before the script ran.
"""
import hashlib
from typing import Any, List, Optional

from upstash_redis.errors import UpstashError

from rediscart.errors import is_noscript_error
from rediscart.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)


CONVERSION_SCRIPT = """
local cart_key = KEYS[1]
local cart_id = ARGV[1]
local ttl = tonumber(ARGV[2])
local line_item_prefix = ARGV[3]
local subkey_pattern = ARGV[4]

local line_item_keys = {}
for i, suffix in ipairs(redis.call("SMEMBERS", cart_key)) do
  line_item_keys[i] = line_item_prefix .. suffix
end

local items = {}
local has_items = false

for _, line_item_key in ipairs(line_item_keys) do
  local flat = redis.call("HGETALL", line_item_key)
  local line_item = {}
  for i = 1, #flat, 2 do
    line_item[flat[i]] = flat[i + 1]
  end
  if line_item.type and line_item.id then
    items[line_item.type] = items[line_item.type] or {}
    items[line_item.type][line_item.id] = line_item
    has_items = true
  end
end

local keys_to_delete = { cart_key }

for _, key in ipairs(redis.call("KEYS", subkey_pattern)) do
  table.insert(keys_to_delete, key)
end

for _, key in ipairs(line_item_keys) do
  table.insert(keys_to_delete, key)
end

redis.call("DEL", unpack(keys_to_delete))

local document
if has_items then
  document = cjson.encode({ id = cart_id, items = items })
else
  -- cjson encodes an empty table as an array
  document = '{"id":' .. cjson.encode(cart_id) .. ',"items":{}}'
end

return redis.call("SET", cart_key, document, "EX", ttl)
"""


class RedisScript:
    """
    Lua script run by SHA, falling back to the full body.

    The SHA is computed once from the body. The first EVALSHA on a server that
    has not seen the script fails with NOSCRIPT; the script is then sent with
    EVAL, which also caches it server-side for later EVALSHA calls.
    """

    def __init__(self, body: str, name: str = "script"):
        self.body = body
        self.name = name
        self.sha = hashlib.sha1(body.encode("utf-8")).hexdigest()

    async def run(self, redis, keys: List[str], args: Optional[List[Any]] = None) -> Any:
        args = [str(arg) for arg in (args or [])]
        try:
            return await redis.evalsha(self.sha, keys=keys, args=args)
        except UpstashError as e:
            if not is_noscript_error(e):
                raise
            logger.info(f"Script {self.name} ({self.sha[:8]}) not cached on server, sending body")

        return await redis.eval(self.body, keys=keys, args=args)


conversion_script = RedisScript(CONVERSION_SCRIPT, name="convert_legacy_cart")


async def convert_legacy_cart(config, cart_id: str) -> None:
    """
    Rewrite a legacy cart as the current JSON document.

    Errors other than NOSCRIPT propagate; a failed conversion leaves the cart
    for the caller to deal with.
    """
    key = config.keys.cart_key(cart_id)
    logger.info(f"Converting legacy cart {sanitize_id_for_logging(cart_id)}")
    try:
        await conversion_script.run(
            config.redis,
            keys=[key],
            args=[
                cart_id,
                config.cart_expires_in,
                config.keys.line_item_prefix,
                config.keys.cart_subkey_pattern(cart_id),
            ],
        )
    except Exception as e:
        logger.error(f"Failed to convert legacy cart {sanitize_id_for_logging(cart_id)}: {e}")
        raise
