from flask import Blueprint, Response, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from fittrack.app import get_store
from fittrack.services.live import SubscriptionClosed
import json

weight_bp = Blueprint('weight', __name__)

@weight_bp.route('/entries', methods=['POST'])
@jwt_required()
def add_weight_entry():
    username = get_jwt_identity()
    data = request.get_json(silent=True) or {}

    entry = get_store().insert_weight_entry(
        username,
        data.get('weight'),
        data.get('recorded_at')
    )

    return jsonify(entry.to_dict()), 201

@weight_bp.route('/entries', methods=['GET'])
@jwt_required()
def get_weight_entries():
    username = get_jwt_identity()
    entries = get_store().list_weight_entries_for_user(username)
    return jsonify([entry.to_dict() for entry in entries])

@weight_bp.route('/entries/<int:entry_id>', methods=['PUT'])
@jwt_required()
def update_weight_entry(entry_id):
    username = get_jwt_identity()
    data = request.get_json(silent=True) or {}

    entry = get_store().update_weight_entry(entry_id, data.get('weight'), owner_username=username)
    if entry is None:
        return jsonify({'error': 'Weight entry not found'}), 404

    return jsonify(entry.to_dict())

@weight_bp.route('/entries/<int:entry_id>', methods=['DELETE'])
@jwt_required()
def delete_weight_entry(entry_id):
    username = get_jwt_identity()

    if not get_store().delete_weight_entry(entry_id, owner_username=username):
        return jsonify({'error': 'Weight entry not found'}), 404

    return jsonify({'message': 'Weight entry deleted successfully'})

@weight_bp.route('/entries/stream', methods=['GET'])
@jwt_required()
def stream_weight_entries():
    username = get_jwt_identity()
    subscription = get_store().subscribe_weight_entries(username)
    keepalive = current_app.config['FITTRACK_STREAM_KEEPALIVE_SECONDS']

    response = Response(event_stream(subscription, keepalive), mimetype='text/event-stream')
    response.headers['Cache-Control'] = 'no-cache'
    response.call_on_close(subscription.close)
    return response


def event_stream(subscription, keepalive):
    """Server-sent events for each snapshot; the subscription ends with the stream."""
    try:
        while True:
            try:
                snapshot = subscription.get(timeout=keepalive)
            except SubscriptionClosed:
                return
            if snapshot is None:
                yield ': keepalive\n\n'
                continue
            payload = json.dumps([entry.to_dict() for entry in snapshot])
            yield f'data: {payload}\n\n'
    finally:
        subscription.close()
