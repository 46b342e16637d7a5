from flask import Blueprint, request, jsonify
from flask_jwt_extended import create_access_token
from fittrack.app import get_store

auth_bp = Blueprint('auth', __name__)

@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}

    # Blank fields and existing usernames surface through the error handlers
    user = get_store().create_user(data.get('username'), data.get('password'))

    access_token = create_access_token(identity=user.username)

    return jsonify({
        'message': 'Account created successfully',
        'access_token': access_token,
        'user': user.to_dict()
    }), 201

@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}

    user = get_store().find_user_by_credentials(data.get('username'), data.get('password'))

    if user is None:
        return jsonify({'error': 'Invalid credentials'}), 401

    access_token = create_access_token(identity=user.username)

    return jsonify({
        'message': 'Login successful',
        'access_token': access_token,
        'user': user.to_dict()
    }), 200
