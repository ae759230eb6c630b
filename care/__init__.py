"""Clinic application for the backend.

This package contains models, serializers, services, views and route
registrations for appointments, schedules, records, uploads and
notifications.
"""
