# routers/websocket_router.py — Real-time board rooms over WebSocket
import uuid
import logging
from datetime import datetime, timezone
from typing import Dict, Set, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auth import AuthService
from database import get_db_session
from models import User
from ordering import group_locks

router = APIRouter(tags=["WebSocket"])
logger = logging.getLogger("taskboard.ws")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def authenticate_socket(token: str, db: AsyncSession) -> Optional[str]:
    """User id behind an access token, or None when the token must be refused.

    Applies the same checks as the HTTP dependency: signature and type,
    revocation, and an existing active user.
    """
    payload = AuthService.decode_access_token(token)
    if not payload:
        return None
    jti = payload.get("jti")
    if jti and await AuthService.is_token_revoked(jti, db):
        logger.info(f"WS refused revoked token for user={payload['sub'][:8]}")
        return None
    user = await db.get(User, payload["sub"])
    if not user or not user.is_active:
        logger.info(f"WS refused token for unknown or inactive user={payload['sub'][:8]}")
        return None
    return user.id


class ConnectionManager:
    """Tracks open sockets and which board rooms each socket has joined.

    A user may hold several sockets (tabs); presence is per user, so a user
    only leaves a room once none of their sockets remain in it.
    """

    def __init__(self):
        self._connections: Dict[str, WebSocket] = {}  # conn_id -> ws
        self._users: Dict[str, str] = {}  # conn_id -> user_id
        self._rooms: Dict[str, Set[str]] = {}  # board_id -> {conn_ids}

    async def connect(self, websocket: WebSocket, user_id: str) -> str:
        await websocket.accept()
        conn_id = str(uuid.uuid4())
        self._connections[conn_id] = websocket
        self._users[conn_id] = user_id
        logger.info(f"WS connected: user={user_id[:8]} conn={conn_id[:8]}")
        return conn_id

    def disconnect(self, conn_id: str) -> list:
        """Drop the socket and its rooms. Returns rooms its user no longer occupies."""
        user_id = self._users.get(conn_id, "")
        vacated = []
        for board_id in list(self._rooms.keys()):
            if conn_id in self._rooms[board_id] and self.leave(conn_id, board_id):
                vacated.append(board_id)
        self._connections.pop(conn_id, None)
        self._users.pop(conn_id, None)
        logger.info(f"WS disconnected: user={user_id[:8]} conn={conn_id[:8]}")
        return vacated

    def join(self, conn_id: str, board_id: str):
        self._rooms.setdefault(board_id, set()).add(conn_id)
        logger.info(f"User {self._users.get(conn_id, '')[:8]} joined board {board_id[:8]}")

    def leave(self, conn_id: str, board_id: str) -> bool:
        """Remove the socket from the room. True when its user has left the room entirely."""
        members = self._rooms.get(board_id)
        if members is None or conn_id not in members:
            return False
        members.discard(conn_id)
        if not members:
            del self._rooms[board_id]
        user_id = self._users.get(conn_id)
        gone = user_id not in self.members(board_id)
        if gone:
            logger.info(f"User {user_id[:8]} left board {board_id[:8]}")
        return gone

    def members(self, board_id: str) -> list:
        return sorted({self._users[c] for c in self._rooms.get(board_id, set()) if c in self._users})

    async def broadcast_to_board(self, board_id: str, message: dict, exclude_conn: Optional[str] = None):
        disconnected = []
        for conn_id in list(self._rooms.get(board_id, set())):
            if conn_id == exclude_conn:
                continue
            ws = self._connections.get(conn_id)
            if ws is None:
                continue
            try:
                await ws.send_json(message)
            except Exception:
                disconnected.append(conn_id)
        for conn_id in disconnected:
            self.disconnect(conn_id)

    def get_stats(self) -> dict:
        return {
            "total_connections": len(self._connections),
            "users": len(set(self._users.values())),
            "rooms": len(self._rooms),
            "room_members": sum(len(self.members(b)) for b in self._rooms),
        }


# Global connection manager
manager = ConnectionManager()


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(...),
    db: AsyncSession = Depends(get_db_session),
):
    """Board room presence: join-board, leave-board, ping"""
    user_id = await authenticate_socket(token, db)
    await db.close()
    if not user_id:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    conn_id = await manager.connect(websocket, user_id)
    await websocket.send_json({"type": "connected", "user_id": user_id, "timestamp": _now()})

    try:
        while True:
            data = await websocket.receive_json()
            msg_type = data.get("type", "")

            if msg_type == "ping":
                await websocket.send_json({"type": "pong", "timestamp": _now()})

            elif msg_type == "join-board":
                board_id = data.get("board_id", "")
                if not board_id:
                    await websocket.send_json({"type": "error", "detail": "board_id is required"})
                    continue
                arrived = user_id not in manager.members(board_id)
                manager.join(conn_id, board_id)
                await websocket.send_json({
                    "type": "joined",
                    "board_id": board_id,
                    "members": manager.members(board_id),
                })
                if arrived:
                    await manager.broadcast_to_board(board_id, {
                        "type": "board.user_joined",
                        "board_id": board_id,
                        "user_id": user_id,
                        "timestamp": _now(),
                    }, exclude_conn=conn_id)

            elif msg_type == "leave-board":
                board_id = data.get("board_id", "")
                if not board_id:
                    await websocket.send_json({"type": "error", "detail": "board_id is required"})
                    continue
                gone = manager.leave(conn_id, board_id)
                await websocket.send_json({"type": "left", "board_id": board_id})
                if gone:
                    await manager.broadcast_to_board(board_id, {
                        "type": "board.user_left",
                        "board_id": board_id,
                        "user_id": user_id,
                        "timestamp": _now(),
                    })

            else:
                await websocket.send_json({"type": "error", "detail": f"Unknown message type: {msg_type}"})

    except WebSocketDisconnect:
        for board_id in manager.disconnect(conn_id):
            await manager.broadcast_to_board(board_id, {
                "type": "board.user_left",
                "board_id": board_id,
                "user_id": user_id,
                "timestamp": _now(),
            })
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        manager.disconnect(conn_id)


@router.get("/ws/stats")
async def websocket_stats():
    """Connection and room counts, plus order-lock activity"""
    return {**manager.get_stats(), "order_locks": group_locks.get_stats()}
