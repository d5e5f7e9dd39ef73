"""Adapters between fitted-model containers and the pooling core"""
