"""
Recommendations Module Summary
==============================

This module implements the recommendation engine of the travel blog platform:
it proposes blogs, packages, destinations and fellow travelers to each user and
learns from how they respond.

Key Features Implemented:
1. CandidateCollectors - Bounded queries tagged with a reason code
2. ScoringService - Additive base + bonus relevance scoring
3. RecommendationGenerator - Concurrent collection, expiry sweep and upsert
4. InteractionTracker - Implicit interactions and explicit feedback
5. RecommendationQueryService - Listing, stats, trending and similar users
6. RecommendationService - Validated, ownership-checked entry point
"""
