"""Validation utilities"""
