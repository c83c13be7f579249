"""Celery tasks for scheduled gamification work"""
