"""Model weighting, allocation and pooled resampling"""
