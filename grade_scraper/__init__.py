"""
Grade conversion scraper: resumable harvesting of exam grade conversion
tables and consolidation of the harvested files into a canonical tree.
"""

__version__ = "1.0.0"
