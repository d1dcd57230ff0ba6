"""
LinkScore Engine

Benchmarks a customer's backlink authority against local competitors:
1. Discovers competitors from organic search results (DataForSEO)
2. Retrieves and filters authority referring domains
3. Finds link gaps against each competitor
4. Scores the campaign on a 0-100 LinkScore and ranks the lead
"""

__version__ = "0.1.0"
