"""Feed realtime de inserções: mantém os websockets abertos por usuário."""
import logging
from collections import defaultdict
from typing import Dict, Iterable, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self.active_connections: Dict[int, Set[WebSocket]] = defaultdict(set)

    async def connect(self, websocket: WebSocket, user_id: int):
        await websocket.accept()
        self.active_connections[user_id].add(websocket)

    def disconnect(self, websocket: WebSocket, user_id: int):
        sockets = self.active_connections.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.active_connections[user_id]

    async def send_personal_message(self, data: dict, user_id: int):
        for websocket in list(self.active_connections.get(user_id, ())):
            try:
                await websocket.send_json(data)
            except Exception:
                # socket morto: o loop de recepção dele faz a limpeza também
                logger.warning("realtime: dropping dead socket for user %s", user_id)
                self.disconnect(websocket, user_id)

    async def publish_insert(self, table: str, record: dict, user_ids: Iterable[int]):
        """Entrega at-least-once para cada destinatário conectado, sem ordem garantida."""
        event = {"type": "INSERT", "table": table, "record": record}
        for user_id in set(user_ids):
            await self.send_personal_message(event, user_id)


manager = ConnectionManager()
