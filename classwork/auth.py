"""
Supabase JWT Authentication for Classwork.
Validates Bearer tokens on all /api/ routes except public endpoints and
exposes the "is teacher" claim to route handlers.
"""
import os
import functools
import logging
import jwt
from flask import request, jsonify, g

from classwork.config import config

logger = logging.getLogger(__name__)

# Routes that don't require authentication
PUBLIC_PREFIXES = [
    '/api/assignments/',   # Assignment definitions are public read-only data
]

PUBLIC_EXACT = [
    '/api/status',
    '/api/legacy',         # Legacy endpoint authenticates with the teacher key in the body
]

TEACHER_CLAIM = 'isTeacher'


def get_jwt_secret():
    """HS256 secret shared with Supabase Auth."""
    secret = os.getenv('SUPABASE_JWT_SECRET')
    if not secret:
        raise RuntimeError('SUPABASE_JWT_SECRET not configured; set it or CLASSWORK_AUTH_DISABLED=1')
    return secret


def validate_token(token):
    """Decoded claims of a student or teacher session token, or None when it is expired or forged."""
    try:
        return jwt.decode(token, get_jwt_secret(), algorithms=['HS256'], audience='authenticated')
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired session token")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug("Rejected session token: %s", e)
        return None


def is_teacher(payload):
    """Custom claims live in app_metadata (Supabase) or at the top level."""
    app_metadata = payload.get('app_metadata') or {}
    return bool(app_metadata.get(TEACHER_CLAIM) or payload.get(TEACHER_CLAIM))


def is_public_route(path):
    """Definitions, the health check and the teacher-key legacy endpoint need no session."""
    return path in PUBLIC_EXACT or any(path.startswith(prefix) for prefix in PUBLIC_PREFIXES)


def teacher_required(view):
    """Reject authenticated users that lack the teacher claim."""
    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        if not getattr(g, 'is_teacher', False):
            return jsonify({'error': 'Teacher access required'}), 403
        return view(*args, **kwargs)
    return wrapper


def init_auth(app):
    """
    Register the before_request auth hook on the Flask app.
    Call this BEFORE registering blueprints.
    """
    @app.before_request
    def check_auth():
        # Local development: every caller is a teacher
        if config.auth_disabled:
            g.user_id = request.headers.get('X-Debug-User', 'local-dev')
            g.user_email = ''
            g.is_teacher = True
            return None

        # Print views are HTML pages but still need a session
        if not (request.path.startswith('/api/') or request.path.startswith('/print/')):
            return None

        if is_public_route(request.path):
            return None

        # Extract token from Authorization header
        auth_header = request.headers.get('Authorization', '')
        if not auth_header.startswith('Bearer '):
            return jsonify({'error': 'Authentication required'}), 401

        token = auth_header[7:]  # Strip 'Bearer '
        payload = validate_token(token)
        if payload is None:
            return jsonify({'error': 'Invalid or expired token'}), 401

        # Attach user info to Flask's g object for use in route handlers
        g.user_id = payload.get('sub')
        g.user_email = payload.get('email', '')
        g.is_teacher = is_teacher(payload)
