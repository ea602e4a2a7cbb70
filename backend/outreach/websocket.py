"""WebSocket real-time notifications using Socket.IO."""

import socketio
import logging
from typing import Dict, Set, Any, Optional

logger = logging.getLogger(__name__)

# Create Socket.IO async server
sio = socketio.AsyncServer(
    async_mode='asgi',
    cors_allowed_origins='*'
)

# Socket.IO ASGI app
socket_app = socketio.ASGIApp(
    sio,
    socketio_path='/socket.io'
)

# Track which clients follow which campaign
active_connections: Dict[int, Set[str]] = {}


def get_socket_app():
    """Get the Socket.IO ASGI app for mounting."""
    return socket_app


def campaign_room(campaign_id: int) -> str:
    return f'campaign_{campaign_id}'


# Socket.IO Event Handlers

@sio.event
async def connect(sid, environ):
    """Handle client connection."""
    logger.info(f"Client connected: {sid}")
    await sio.emit('connected', {
        'message': 'Connected to outreach notifications',
        'sid': sid
    }, room=sid)


@sio.event
async def disconnect(sid):
    """Handle client disconnection."""
    logger.info(f"Client disconnected: {sid}")

    for campaign_id, sids in list(active_connections.items()):
        if sid in sids:
            sids.remove(sid)
            if not sids:
                del active_connections[campaign_id]


@sio.event
async def join_campaign(sid, data):
    """Follow one campaign's stage notifications."""
    campaign_id = (data or {}).get('campaign_id')

    if not campaign_id:
        await sio.emit('error', {
            'message': 'campaign_id is required'
        }, room=sid)
        return

    await sio.enter_room(sid, campaign_room(campaign_id))
    active_connections.setdefault(campaign_id, set()).add(sid)

    logger.info(f"Client {sid} joined campaign room: {campaign_id}")

    await sio.emit('joined_campaign', {
        'campaign_id': campaign_id,
        'message': f'Joined campaign room {campaign_id}'
    }, room=sid)


@sio.event
async def ping(sid, data):
    """Handle ping for keepalive."""
    await sio.emit('pong', {
        'timestamp': (data or {}).get('timestamp')
    }, room=sid)


# Notification Helper

async def emit_notification(payload: Dict[str, Any], campaign_id: Optional[int] = None):
    """
    Broadcast a notification to every client, and to the campaign room
    under a campaign-scoped event name.
    """
    await sio.emit('notification', payload)

    if campaign_id is not None:
        await sio.emit('campaign_update', payload, room=campaign_room(campaign_id))


def get_connection_stats():
    """Get statistics about active connections."""
    return {
        'total_connections': sum(len(sids) for sids in active_connections.values()),
        'campaigns_followed': len(active_connections),
        'connections_by_campaign': {
            campaign_id: len(sids)
            for campaign_id, sids in active_connections.items()
        }
    }
