"""
Configuration management for the genomic data tour.
"""

from .settings import TourConfig, load_tour_config

__all__ = ["TourConfig", "load_tour_config"]
