"""
Lua scripts for session revocation.

A script runs as one step on the Redis server, so no session can be added to
the index between reading it and revoking what it lists.
"""

# Revoke every session indexed for a user and drop the index.
# KEYS[1] user session index, ARGV[1] revocation key prefix,
# ARGV[2] reason, ARGV[3] revoked_at. Returns the number of sessions revoked.
REVOKE_USER_SESSIONS_SCRIPT = """
local index_key = KEYS[1]
local revoked_prefix = ARGV[1]
local reason = ARGV[2]
local revoked_at = ARGV[3]

local token_hashes = redis.call('ZRANGE', index_key, 0, -1)
for _, token_hash in ipairs(token_hashes) do
    redis.call('HSET', revoked_prefix .. token_hash,
        'reason', reason, 'revoked_at', revoked_at)
end
redis.call('DEL', index_key)

return #token_hashes
"""
