"""Error taxonomy and fitted-model data structures"""
