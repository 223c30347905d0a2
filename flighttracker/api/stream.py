"""
Live update stream.

GET /api/stream            - all topics
GET /api/stream/<topic>    - one of flight-updates, statistics, notifications

Server-Sent Events fed from a Notifier subscription. The subscription
is removed when the client disconnects.
"""

import json
import logging
import queue
import time

from flask import Blueprint, Response, current_app, jsonify, stream_with_context

from flighttracker.notifier import TOPICS

logger = logging.getLogger(__name__)

stream_bp = Blueprint('stream', __name__, url_prefix='/api/stream')

SSE_QUEUE_TIMEOUT = 1.0
SSE_KEEPALIVE_INTERVAL = 15.0


def format_sse(message: dict) -> str:
    """Encode one message as an SSE frame."""
    return f'data: {json.dumps(message)}\n\n'


def _stream(topics):
    notifier = current_app.config['NOTIFIER']

    def generate():
        subscription = notifier.subscribe(topics)
        last_keepalive = time.time()
        try:
            while True:
                try:
                    msg = subscription.get(timeout=SSE_QUEUE_TIMEOUT)
                    last_keepalive = time.time()
                    yield format_sse(msg)
                except queue.Empty:
                    now = time.time()
                    if now - last_keepalive >= SSE_KEEPALIVE_INTERVAL:
                        yield format_sse({'type': 'keepalive'})
                        last_keepalive = now
        finally:
            notifier.unsubscribe(subscription)
            logger.debug(f'Stream subscriber {subscription.id[:8]} disconnected')

    response = Response(stream_with_context(generate()), mimetype='text/event-stream')
    response.headers['Cache-Control'] = 'no-cache'
    response.headers['X-Accel-Buffering'] = 'no'
    return response


@stream_bp.route('', methods=['GET'])
def stream_all():
    """SSE stream of every topic."""
    return _stream(None)


@stream_bp.route('/<topic>', methods=['GET'])
def stream_topic(topic: str):
    """SSE stream of a single topic."""
    if topic not in TOPICS:
        return jsonify({'error': f'Unknown topic: {topic}', 'topics': list(TOPICS)}), 404
    return _stream([topic])
