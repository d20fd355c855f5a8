"""
Classwork API Routes
====================

All API route blueprints for the Classwork application.

Usage:
    from classwork.routes import register_routes
    register_routes(app)
"""
from .student_routes import student_bp
from .legacy_routes import legacy_bp
from .teacher_routes import teacher_bp


def register_routes(app):
    """Register all route blueprints with the Flask app."""
    app.register_blueprint(student_bp)
    app.register_blueprint(legacy_bp)
    app.register_blueprint(teacher_bp)


__all__ = [
    'register_routes',
    'student_bp',
    'legacy_bp',
    'teacher_bp',
]
