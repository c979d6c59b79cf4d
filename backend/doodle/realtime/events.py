"""Socket.IO event names shared by the handlers and tests."""

# inbound
ROOM_JOIN = "room:join"
ROOM_LEAVE = "room:leave"
GAME_START = "game:start"
DRAW_STROKE = "draw:stroke"
DRAW_CLEAR = "draw:clear"
CHAT_MESSAGE = "chat:message"

# outbound
ROOM_JOINED = "room:joined"
ROOM_ROSTER = "room:roster"
ROOM_ERROR = "room:error"
ROUND_WORD = "round:word"
ROUND_HINT = "round:hint"
ROUND_END = "round:end"
GUESS_CORRECT = "guess:correct"

# room:error codes
INVALID_PAYLOAD = "invalid_payload"
NOT_IN_ROOM = "not_in_room"
ALREADY_IN_ROOM = "already_in_room"
ONLY_HOST = "only_host"
CANNOT_START = "cannot_start"
