"""
Domain Filtering Utilities

Shared host handling used by every path that compares domains:
- Referring-domain deduplication in the backlink gateway
- Competitor discovery from organic search results
- Link gap comparison and blocklist lookups

Directories, review sites, social platforms and search engines are never
treated as competitors, however they were discovered.
"""

from typing import Optional, Set


# =============================================================================
# EXCLUDED DOMAINS - Platforms that rank for local queries but don't compete
# =============================================================================

# Australian business directories and lead marketplaces
AU_DIRECTORIES = {
    "localsearch.com.au",
    "yellowpages.com.au",
    "hipages.com.au",
    "truelocal.com.au",
    "oneflare.com.au",
    "startlocal.com.au",
    "hotfrog.com.au",
    "australiabusinesslisting.com.au",
    "binglocal.com.au",
    "purelocal.com.au",
    "aussieweb.com.au",
    "bark.com", "bark.com.au",
    "airtasker.com",
    "serviceseeking.com.au",
    "word-of-mouth.com.au",
}

# Review & Directory Sites
REVIEW_SITES = {
    "clutch.co",
    "trustpilot.com",
    "productreview.com.au",
    "yelp.com", "yelp.com.au",
    "tripadvisor.com", "tripadvisor.com.au",
    "glassdoor.com", "glassdoor.com.au",
}

# Social Media & Video Platforms
SOCIAL_MEDIA = {
    "facebook.com", "fb.com",
    "twitter.com", "x.com",
    "instagram.com",
    "linkedin.com",
    "reddit.com",
    "youtube.com", "youtu.be",
    "tiktok.com",
    "pinterest.com", "pinterest.com.au",
}

# Search engines, SEO tools & general platforms
PLATFORMS = {
    "google.com", "google.com.au",
    "bing.com",
    "semrush.com",
    "ahrefs.com",
    "wikipedia.org",
    "gumtree.com.au",
    "seek.com.au",
    "indeed.com", "au.indeed.com",
}

# Combine all into master set
EXCLUDED_DOMAINS: Set[str] = AU_DIRECTORIES | REVIEW_SITES | SOCIAL_MEDIA | PLATFORMS


def canonicalize_host(host: Optional[str]) -> str:
    """
    Reduce a host name to its canonical form.

    Lowercases, trims whitespace and a trailing dot, and strips any number of
    leading "www." labels so "WWW.Example.com." and "example.com" compare equal.

    Returns an empty string for empty input.
    """
    if not host:
        return ""

    canonical = host.strip().lower().rstrip(".")
    while canonical.startswith("www."):
        canonical = canonical[4:]
    return canonical


def _matches(domain: str, candidates: Set[str]) -> bool:
    if domain in candidates:
        return True
    # Subdomain match: "au.yelp.com" belongs to "yelp.com"
    return any(domain.endswith("." + excluded) for excluded in candidates)


def is_excluded_domain(domain: Optional[str]) -> bool:
    """
    Check if a domain should be excluded from competitor analysis.

    Args:
        domain: Domain name to check (e.g., "hipages.com.au", "www.facebook.com")

    Returns:
        True if domain should be excluded, False if it's a valid competitor candidate
    """
    canonical = canonicalize_host(domain)
    if not canonical:
        return True
    return _matches(canonical, EXCLUDED_DOMAINS)

