"""
Classwork
=========

Classroom assignment platform: students answer multi-page question forms,
answers are cached locally and autosaved to a hosted document store, and
teachers review submissions through a dashboard API.

Structure:
- client.py: Student editing session (cache + autosave + print + submit)
- routes/: Flask API route blueprints
- services/: Synchronization, aggregation and export services
- config.py: Configuration management
"""

from .config import config, Config

__version__ = "1.0.0"

__all__ = ['config', 'Config']
