"""Shared constants for chatsync."""

from __future__ import annotations

# Stored message record fields (store rows and stream notifications share this shape)
K_ID = "id"
K_SENDER_ID = "sender_id"
K_ROOM_ID = "group_id"
K_CONTENT = "content"
K_CONTENT_HASH = "content_hash"
K_ENCRYPTED = "encrypted"
K_CREATED_AT = "created_at"
K_CLIENT_ID = "client_id"

# Room rows
K_ROOM_NAME = "name"

# Membership rows
K_MEMBER_ROOM_ID = "group_id"
K_MEMBER_USER_ID = "user_id"

# Profile rows
K_PROFILE_NAME = "name"
K_PROFILE_EMAIL = "email"

# Subscription acknowledgment states reported by the event stream
SUB_SUBSCRIBED = "SUBSCRIBED"
SUB_TIMED_OUT = "TIMED_OUT"
SUB_CHANNEL_ERROR = "CHANNEL_ERROR"
SUB_CLOSED = "CLOSED"

CHANNEL_PREFIX = "messages:"
TEMP_ID_PREFIX = "temp-"

DEFAULT_ROOM_NAME = "General Discussion"
DEFAULT_HISTORY_LIMIT = 50
MAX_MESSAGES_PER_ROOM_DEFAULT = 500
MAX_NOTICES = 50

ROOM_KIND_GROUP = "group"
UNKNOWN_SENDER = "Unknown"
